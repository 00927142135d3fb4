"""Notification sink implementations."""

import logfire

from enroll.domain.service.notification import Notifier
from enroll.domain.value import Notification, NotificationLevel


class NotificationSink(Notifier):
    """Base class for notification sinks.

    Provides type distinction for dependency injection.
    """

    pass


class LogfireNotifier(NotificationSink):
    """Emits notifications as log events (headless runs, CLI)."""

    def notify(self, notification: Notification) -> None:
        outcome = notification.outcome.value if notification.outcome else None
        if notification.level == NotificationLevel.ERROR:
            logfire.error("Notification: {message}", message=notification.message, outcome=outcome)
        else:
            logfire.info(
                "Notification: {message}",
                message=notification.message,
                level=notification.level.value,
                outcome=outcome,
            )


class CollectingNotifier(NotificationSink):
    """Records notifications for inspection in tests."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.notifications]

    def of_level(self, level: NotificationLevel) -> list[Notification]:
        return [n for n in self.notifications if n.level == level]
