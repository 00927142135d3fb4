"""Completion coordinator domain service."""

from collections.abc import Callable

import logfire

from enroll.domain.error import GatewayError
from enroll.domain.model.session import PollingSession
from enroll.domain.repository.identity import IdentityRepository
from enroll.domain.value import (
    CompletionOutcome,
    CompletionResult,
    InviteCode,
    Notification,
    NotificationLevel,
    RequestStatus,
)
from enroll.util.timer import PeriodicTimer

from .base import Service
from .gateway import InvitationGateway
from .notification import Notifier
from .status_poller import StatusPoller

OutcomeListener = Callable[[str, CompletionResult], None]

# Backend wording for "the account this request would create already exists"
_ALREADY_EXISTS_FRAGMENTS = ("user_exists", "already exists", "already registered")

# Backend wording for a provider auth key that could not be verified
_AUTH_KEY_FRAGMENTS = ("invalid_auth_key", "failed to verify", "invalid stremio auth key")

MSG_COMPLETED = "Account created successfully!"
MSG_ALREADY_EXISTS = "Account already exists!"
MSG_ALREADY_CREATED = "Account already created!"
MSG_EMAIL_MISMATCH = (
    "The email of the Stremio account you authorized does not match the email "
    "of your request. Start a new request to try again."
)
MSG_VERIFICATION_EXHAUSTED = (
    "Failed to verify Stremio authentication. Please try refreshing the OAuth link."
)
MSG_FAILED = "Failed to create account"


class CompletionCoordinator(Service):
    """Owns the "convert this authorization into an account" call.

    Keeps one PollingSession per authorization code. The session's in-flight
    flag is tested and set in the same synchronous step before the backend
    call is awaited, so at most one completion call per code is ever
    outstanding.

    Outcome classification:
    - EMAIL_MISMATCH: terminal, the flag is persisted
    - 409 / user exists: success-equivalent
    - 404 with the request completed: success-equivalent
    - 404 otherwise: terminal, silent
    - auth key not verified: retryable, capped per code, one message at the cap
    - anything else: surfaced, retryable, counted toward the same cap
    """

    def __init__(
        self,
        code: InviteCode,
        gateway: InvitationGateway,
        poller: StatusPoller,
        repository: IdentityRepository,
        notifier: Notifier,
        max_failures: int = 3,
        confirm_interval: float = 0.5,
        confirm_attempts: int = 10,
    ) -> None:
        """Initialize coordinator.

        Args:
            code: Invitation code
            gateway: Invitation backend
            poller: Status poller used to force refetches
            repository: Identity store (email mismatch is persisted)
            notifier: Sink for user-visible outcomes
            max_failures: Retryable failures tolerated per authorization code
            confirm_interval: Seconds between confirmation refetches
            confirm_attempts: Confirmation refetches after a success
        """
        self.code = code
        self.gateway = gateway
        self.poller = poller
        self.repository = repository
        self.notifier = notifier
        self.max_failures = max_failures
        self.confirm_interval = confirm_interval
        self.confirm_attempts = confirm_attempts
        self._sessions: dict[str, PollingSession] = {}
        self._listeners: list[OutcomeListener] = []
        self._confirm_timer: PeriodicTimer | None = None

    @property
    def attempted_codes(self) -> frozenset[str]:
        """Codes with a completion call in flight or terminally resolved."""
        return frozenset(c for c, s in self._sessions.items() if s.attempted)

    @property
    def failure_counts(self) -> dict[str, int]:
        return {c: s.failure_count for c, s in self._sessions.items() if s.failure_count}

    @property
    def confirming(self) -> bool:
        return self._confirm_timer is not None and self._confirm_timer.running

    def is_attempted(self, oauth_code: str) -> bool:
        session = self._sessions.get(oauth_code)
        return session is not None and session.attempted

    def is_resolved(self, oauth_code: str) -> bool:
        session = self._sessions.get(oauth_code)
        return session is not None and session.resolved

    def failure_count(self, oauth_code: str) -> int:
        session = self._sessions.get(oauth_code)
        return session.failure_count if session else 0

    def is_exhausted(self, oauth_code: str) -> bool:
        return self.failure_count(oauth_code) >= self.max_failures

    def can_attempt(self, oauth_code: str) -> bool:
        return not self.is_attempted(oauth_code) and not self.is_exhausted(oauth_code)

    def subscribe(self, listener: OutcomeListener) -> None:
        """Register a listener called with (oauth_code, result) for every attempt."""
        self._listeners.append(listener)

    async def complete(
        self,
        oauth_code: str,
        email: str,
        username: str,
        auth_key: str,
        group_name: str | None = None,
    ) -> CompletionResult:
        """Exchange an auth key for an account, at most once per code.

        Args:
            oauth_code: Authorization code the auth key was obtained for
            email: Email of the reviewed request
            username: Username of the reviewed request
            auth_key: Provider auth key
            group_name: Group the new account joins

        Returns:
            Classified result (SKIPPED when the code is busy or exhausted)
        """
        session = self._sessions.setdefault(oauth_code, PollingSession(oauth_code=oauth_code))
        if not session.try_acquire(self.max_failures):
            return CompletionResult(
                outcome=CompletionOutcome.SKIPPED, failure_count=session.failure_count
            )

        try:
            with logfire.span(
                "Completing invitation request", code=str(self.code), username=username
            ):
                await self.gateway.complete(
                    self.code, email, username, auth_key, group_name
                )
        except GatewayError as e:
            result = await self._classify_failure(session, e, email, username)
        except BaseException:
            session.release()
            raise
        else:
            session.resolve()
            self._notify(NotificationLevel.SUCCESS, MSG_COMPLETED, CompletionOutcome.COMPLETED)
            result = CompletionResult(outcome=CompletionOutcome.COMPLETED, message=MSG_COMPLETED)

        logfire.info(
            "Completion attempt classified",
            code=str(self.code),
            outcome=result.outcome.value,
            failure_count=result.failure_count,
        )
        if result.outcome.is_success:
            await self._confirm()
        for listener in list(self._listeners):
            listener(oauth_code, result)
        return result

    async def close(self) -> None:
        """Cancel the confirmation loop, if running."""
        if self._confirm_timer is not None:
            self._confirm_timer.cancel()
            await self._confirm_timer.wait()
            self._confirm_timer = None

    async def wait_confirmed(self) -> None:
        """Wait for the confirmation loop to finish."""
        if self._confirm_timer is not None:
            await self._confirm_timer.wait()

    async def _classify_failure(
        self,
        session: PollingSession,
        error: GatewayError,
        email: str,
        username: str,
    ) -> CompletionResult:
        if error.code == "EMAIL_MISMATCH":
            session.resolve()
            await self.repository.save(
                self.code,
                email=email,
                username=username,
                submitted=True,
                email_mismatch_error=True,
            )
            self._notify(NotificationLevel.ERROR, MSG_EMAIL_MISMATCH, CompletionOutcome.EMAIL_MISMATCH)
            return CompletionResult(
                outcome=CompletionOutcome.EMAIL_MISMATCH, message=MSG_EMAIL_MISMATCH
            )

        if error.is_not_found:
            snapshot = await self.poller.refresh()
            completed = (
                snapshot is not None and snapshot.status == RequestStatus.COMPLETED
            ) or error.payload.get("status") == RequestStatus.COMPLETED.value
            session.resolve()
            if completed:
                self._notify(
                    NotificationLevel.SUCCESS, MSG_ALREADY_CREATED, CompletionOutcome.ALREADY_COMPLETED
                )
                return CompletionResult(
                    outcome=CompletionOutcome.ALREADY_COMPLETED, message=MSG_ALREADY_CREATED
                )
            logfire.info("Completion target not found, giving up on code", code=str(self.code))
            return CompletionResult(outcome=CompletionOutcome.NOT_FOUND)

        if error.is_conflict or error.mentions(*_ALREADY_EXISTS_FRAGMENTS):
            session.resolve()
            self._notify(
                NotificationLevel.SUCCESS, MSG_ALREADY_EXISTS, CompletionOutcome.ALREADY_COMPLETED
            )
            return CompletionResult(
                outcome=CompletionOutcome.ALREADY_COMPLETED, message=MSG_ALREADY_EXISTS
            )

        session.failure_count += 1
        session.release()
        exhausted = session.failure_count >= self.max_failures

        if error.mentions(*_AUTH_KEY_FRAGMENTS):
            logfire.warn(
                "Auth key verification failed",
                code=str(self.code),
                failure_count=session.failure_count,
            )
            if not exhausted:
                return CompletionResult(
                    outcome=CompletionOutcome.RETRY, failure_count=session.failure_count
                )
            session.resolve()
            self._notify(
                NotificationLevel.ERROR, MSG_VERIFICATION_EXHAUSTED, CompletionOutcome.EXHAUSTED
            )
            return CompletionResult(
                outcome=CompletionOutcome.EXHAUSTED,
                message=MSG_VERIFICATION_EXHAUSTED,
                failure_count=session.failure_count,
            )

        message = error.message or MSG_FAILED
        logfire.error(
            "Completion failed", code=str(self.code), status_code=error.status_code, error=message
        )
        outcome = CompletionOutcome.EXHAUSTED if exhausted else CompletionOutcome.RETRY
        if exhausted:
            session.resolve()
        self._notify(NotificationLevel.ERROR, message, outcome)
        return CompletionResult(
            outcome=outcome, message=message, failure_count=session.failure_count
        )

    async def _confirm(self) -> None:
        """Refetch until the backend reports completed, briefly.

        Masks read-replica or cache lag right after the account was created.
        """
        snapshot = await self.poller.refresh()
        if snapshot is not None and snapshot.status == RequestStatus.COMPLETED:
            return
        if self._confirm_timer is not None:
            self._confirm_timer.cancel()

        async def confirm_tick() -> None:
            refreshed = await self.poller.refresh()
            if refreshed is not None and refreshed.status == RequestStatus.COMPLETED:
                timer.cancel()

        timer = PeriodicTimer(
            f"completion-confirm-{self.code}",
            confirm_tick,
            self.confirm_interval,
            max_ticks=self.confirm_attempts,
        )
        self._confirm_timer = timer
        timer.start()

    def _notify(
        self, level: NotificationLevel, message: str, outcome: CompletionOutcome
    ) -> None:
        self.notifier.notify(Notification(level=level, message=message, outcome=outcome))
