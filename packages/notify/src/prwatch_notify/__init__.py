"""Notification sinks for prwatch sessions."""
