"""Polling session entity."""

from pydantic import BaseModel


class PollingSession(BaseModel):
    """Completion bookkeeping for one authorization code.

    Owned by the CompletionCoordinator. Other components only ask the
    coordinator whether a code can be attempted; they never hold a reference
    to the session itself.

    Business rules:
    - At most one completion call in flight per code
    - A resolved session never dispatches again
    - Verification failures accumulate up to the configured cap
    """

    oauth_code: str
    in_flight: bool = False
    resolved: bool = False
    failure_count: int = 0

    @property
    def attempted(self) -> bool:
        """Code is in flight or terminally resolved."""
        return self.in_flight or self.resolved

    def try_acquire(self, max_failures: int) -> bool:
        """Test-and-set the in-flight flag.

        Must be called without awaiting between the check and the
        completion call dispatch.
        """
        if self.attempted or self.failure_count >= max_failures:
            return False
        self.in_flight = True
        return True

    def release(self) -> None:
        self.in_flight = False

    def resolve(self) -> None:
        self.in_flight = False
        self.resolved = True
