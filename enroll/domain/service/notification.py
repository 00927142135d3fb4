"""User-facing notification sink interface."""

from enroll.domain.value import Notification


class Notifier:
    """Receives classified, user-visible outcomes.

    Only completion outcomes and explicit user actions reach the notifier;
    background polling failures never do.
    """

    def notify(self, notification: Notification) -> None:
        """Deliver a notification.

        Args:
            notification: Message and severity to show
        """
        raise NotImplementedError
