"""OAuth watcher domain service."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import logfire

from enroll.domain.model.identity import PersistedIdentity
from enroll.domain.model.snapshot import InvitationRequestSnapshot
from enroll.domain.value import AuthorizationCheck, RequestStatus
from enroll.util.timer import CancellationToken, PeriodicTimer

from .base import Service
from .coordinator import CompletionCoordinator
from .gateway import AuthorizationProvider

ExternalHandlerCheck = Callable[[str], bool]


class OAuthWatcher(Service):
    """Polls the provider for one authorization code at a time.

    The watcher is the only component that triggers account completion. It
    runs for an accepted snapshot carrying a live, unexpired code and is torn
    down when the code rotates, the link expires, the request completes or an
    email mismatch is recorded. Each running timer holds the cancellation
    token of the generation it was started under, so a tick that resumes
    after a rotation does nothing.
    """

    def __init__(
        self,
        provider: AuthorizationProvider,
        coordinator: CompletionCoordinator,
        interval: float = 5.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize watcher.

        Args:
            provider: Third-party authorization endpoint
            coordinator: Completion coordinator
            interval: Seconds between provider checks
            clock: Wall clock used for link expiry (UTC)
        """
        self.provider = provider
        self.coordinator = coordinator
        self.interval = interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._is_externally_handled: ExternalHandlerCheck = lambda code: False
        self._timer: PeriodicTimer | None = None
        self._oauth_code: str | None = None
        self._snapshot: InvitationRequestSnapshot | None = None
        self._identity = PersistedIdentity()

    def set_external_handler_check(self, check: ExternalHandlerCheck) -> None:
        """Install the predicate telling whether a UI-owned watcher has a code."""
        self._is_externally_handled = check

    @property
    def oauth_code(self) -> str | None:
        """Code currently being watched."""
        return self._oauth_code if self.running else None

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.running

    @property
    def token(self) -> CancellationToken | None:
        return self._timer.token if self._timer else None

    def is_eligible(
        self, snapshot: InvitationRequestSnapshot | None, identity: PersistedIdentity
    ) -> bool:
        """Whether a watcher may run for this snapshot."""
        if snapshot is None or identity.email_mismatch_error:
            return False
        if not snapshot.is_watchable(self._clock()):
            return False
        code = snapshot.oauth_code
        return not (
            self._is_externally_handled(code)
            or self.coordinator.is_resolved(code)
            or self.coordinator.is_exhausted(code)
        )

    def sync(
        self,
        snapshot: InvitationRequestSnapshot | None,
        identity: PersistedIdentity,
        generation: int,
    ) -> None:
        """Start, keep or stop the watcher for the latest state.

        Args:
            snapshot: Last accepted snapshot
            identity: Current identity for the invitation code
            generation: Reconciler generation the snapshot was applied under
        """
        self._snapshot = snapshot
        self._identity = identity
        if not self.is_eligible(snapshot, identity):
            if self.running:
                logfire.info("OAuth watcher stopped", oauth_code=self._oauth_code)
            self.stop()
            return

        if (
            self.running
            and self._oauth_code == snapshot.oauth_code
            and self._timer.token.generation == generation
        ):
            return

        self.stop()
        token = CancellationToken(generation)
        code = snapshot.oauth_code

        async def tick() -> None:
            await self._check(code, token)

        self._oauth_code = code
        self._timer = PeriodicTimer(
            f"oauth-watcher-{code}", tick, self.interval, token=token, immediate=True
        )
        self._timer.start()
        logfire.info("OAuth watcher started", oauth_code=code, generation=generation)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._oauth_code = None

    async def wait(self) -> None:
        if self._timer is not None:
            await self._timer.wait()

    async def _check(self, code: str, token: CancellationToken) -> None:
        snapshot = self._snapshot
        if snapshot is None or snapshot.oauth_code != code:
            return
        if snapshot.is_link_expired(self._clock()):
            logfire.info("OAuth link expired, watcher stopped", oauth_code=code)
            self._stop_if_current(token)
            return
        if self._identity.email_mismatch_error or self._is_externally_handled(code):
            self._stop_if_current(token)
            return

        check = await self.provider.check_authorization(code)
        if token.cancelled or not check.authorized:
            return

        snapshot = self._snapshot
        if snapshot is None or snapshot.status == RequestStatus.COMPLETED:
            self._stop_if_current(token)
            return
        if self.coordinator.is_attempted(code):
            return
        if self.coordinator.is_exhausted(code):
            self._stop_if_current(token)
            return

        email, username = self._resolve_identity(snapshot, check)
        if not email or not username:
            logfire.warn("No identity to complete with", oauth_code=code)
            return

        # A dispatched completion call always runs to classification, even if
        # the watcher is torn down meanwhile
        result = await asyncio.shield(
            self.coordinator.complete(
                code, email, username, check.auth_key, snapshot.group_name
            )
        )
        if result.outcome.stops_watching:
            self._stop_if_current(token)

    def _resolve_identity(
        self, snapshot: InvitationRequestSnapshot, check: AuthorizationCheck
    ) -> tuple[str, str]:
        """Pick the identity to complete with.

        The submitted request wins, then the backend's record, then whatever
        the provider reports, so the created account matches the request that
        was reviewed.
        """
        identity = self._identity
        user = check.user
        email = (
            identity.email.strip()
            or (snapshot.email or "").strip()
            or ((user.email if user else None) or "").strip()
        )
        username = (
            identity.username.strip()
            or (snapshot.username or "").strip()
            or ((user.username if user else None) or "").strip()
        )
        return email.lower(), username

    def _stop_if_current(self, token: CancellationToken) -> None:
        if self._timer is not None and self._timer.token is token:
            self.stop()
        else:
            token.cancel()
