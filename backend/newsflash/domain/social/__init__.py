"""Follow and friendship relationships."""
