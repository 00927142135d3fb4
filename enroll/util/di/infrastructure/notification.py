"""Notification infrastructure providers."""

from dishka import Scope, provide

from enroll.adapter.notification.sink import LogfireNotifier, NotificationSink
from enroll.util.di.base import ProviderBase


class NotificationProvider(ProviderBase):
    """Notification component base."""

    __mock_component__ = "notification"


class ProdNotificationProvider(NotificationProvider):
    """Production notification provider (log events)."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_notification_sink(self) -> NotificationSink:
        """Provide notification sink."""
        return LogfireNotifier()
