"""Notifications: in-app messages for workflow events."""
