"""Status poller domain service."""

import time
from collections.abc import Awaitable, Callable

import logfire

from enroll.domain.error import GatewayError
from enroll.domain.model.snapshot import InvitationRequestSnapshot
from enroll.domain.value import InviteCode, RequestStatus
from enroll.util.timer import PeriodicTimer

from .base import Service
from .gateway import InvitationGateway
from .polling import next_poll_interval

SnapshotHandler = Callable[[InvitationRequestSnapshot], Awaitable[None]]
SignalHandler = Callable[[], Awaitable[None]]

# Backend wording for a request against a deactivated invitation
_INACTIVE_FRAGMENTS = ("not active", "disabled", "inactive")


class StatusPoller(Service):
    """Periodically fetches the request status record.

    The cadence is a function of the last observed status and polling winds
    down by itself on a terminal status. Every successful fetch is stamped
    with the monotonic time it was issued and handed to the snapshot handler.

    A 404 means the tracked request no longer exists: polling stops and the
    not-found handler runs. Any other failure is logged and skipped until the
    next tick.
    """

    def __init__(
        self,
        gateway: InvitationGateway,
        code: InviteCode,
        pending_interval: float = 2.0,
        accepted_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize poller.

        Args:
            gateway: Invitation backend
            code: Invitation code being tracked
            pending_interval: Seconds between fetches while pending
            accepted_interval: Seconds between fetches while accepted
            clock: Monotonic clock used to stamp fetches
        """
        self.gateway = gateway
        self.code = code
        self.pending_interval = pending_interval
        self.accepted_interval = accepted_interval
        self._clock = clock
        self._last_issued_at = float("-inf")
        self._newest_fetched_at = float("-inf")
        self._last_status: RequestStatus | None = None
        self._email = ""
        self._username = ""
        self._timer: PeriodicTimer | None = None
        self._on_snapshot: SnapshotHandler | None = None
        self._on_not_found: SignalHandler | None = None
        self._on_disabled: SignalHandler | None = None

    def attach(
        self,
        on_snapshot: SnapshotHandler,
        on_not_found: SignalHandler | None = None,
        on_disabled: SignalHandler | None = None,
    ) -> None:
        """Register the handlers fetch results are delivered to."""
        self._on_snapshot = on_snapshot
        self._on_not_found = on_not_found
        self._on_disabled = on_disabled

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.running

    @property
    def last_status(self) -> RequestStatus | None:
        return self._last_status

    def next_interval(self) -> float | None:
        return next_poll_interval(
            self._last_status, self.pending_interval, self.accepted_interval
        )

    def start(self, email: str, username: str) -> None:
        """Start polling for the request made with this identity.

        The first fetch happens immediately. Restarting replaces any running
        timer.
        """
        self.stop()
        self._email = email
        self._username = username
        self._last_status = None
        self._newest_fetched_at = float("-inf")
        self._timer = PeriodicTimer(
            f"status-poller-{self.code}",
            self._tick,
            self.next_interval,
            immediate=True,
        )
        self._timer.start()
        logfire.info("Status polling started", code=str(self.code))

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    async def wait(self) -> None:
        """Wait for the current polling timer to wind down."""
        if self._timer is not None:
            await self._timer.wait()

    async def refresh(self) -> InvitationRequestSnapshot | None:
        """Fetch the status out of band, without waiting for the next tick.

        Returns:
            The fetched snapshot, or None if the fetch failed
        """
        if not self._email or not self._username:
            return None
        return await self._fetch()

    async def _tick(self) -> None:
        await self._fetch()

    async def _fetch(self) -> InvitationRequestSnapshot | None:
        issued_at = self._issue_timestamp()
        try:
            with logfire.span("Fetching request status", code=str(self.code)):
                record = await self.gateway.fetch_status(
                    self.code, self._email, self._username
                )
        except GatewayError as e:
            await self._handle_failure(e)
            return None

        snapshot = InvitationRequestSnapshot.from_record(record, fetched_at=issued_at)
        # A response overtaken by a later fetch must not set the cadence
        if snapshot.fetched_at > self._newest_fetched_at:
            self._newest_fetched_at = snapshot.fetched_at
            self._last_status = snapshot.status
        await self._deliver("snapshot", self._on_snapshot, snapshot)
        return snapshot

    async def _handle_failure(self, error: GatewayError) -> None:
        if error.is_not_found:
            logfire.info("Request not found, stopping status polling", code=str(self.code))
            self.stop()
            await self._deliver("not found", self._on_not_found)
            return

        if error.status_code == 400 and error.mentions(*_INACTIVE_FRAGMENTS):
            logfire.info("Invitation no longer active, stopping status polling", code=str(self.code))
            self.stop()
            await self._deliver("disabled", self._on_disabled)
            return

        logfire.warn(
            "Status fetch failed",
            code=str(self.code),
            status_code=error.status_code,
            error=error.message,
        )

    async def _deliver(
        self, event: str, handler: Callable[..., Awaitable[None]] | None, *args: object
    ) -> None:
        """Run a handler, keeping polling alive if it fails."""
        if handler is None:
            return
        try:
            await handler(*args)
        except Exception:
            logfire.exception("Status {event} handler failed", event=event, code=str(self.code))

    def _issue_timestamp(self) -> float:
        # Strictly increasing even if the clock does not advance between fetches
        now = max(self._clock(), self._last_issued_at + 1e-6)
        self._last_issued_at = now
        return now
