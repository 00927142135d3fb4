"""Notification sinks."""

from .sink import CollectingNotifier, LogfireNotifier, NotificationSink

__all__ = ["NotificationSink", "LogfireNotifier", "CollectingNotifier"]
