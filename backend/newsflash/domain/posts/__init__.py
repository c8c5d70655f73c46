"""Posts, audiences and engagement."""
