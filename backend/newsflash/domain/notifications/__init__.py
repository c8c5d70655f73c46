"""Notification records, outbox and push dispatch."""
