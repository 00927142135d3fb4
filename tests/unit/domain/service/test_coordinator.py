"""Tests for the completion coordinator."""

import asyncio

import pytest

from enroll.adapter.invitation.client import InvitationClient, MockInvitationClient
from enroll.adapter.notification.sink import CollectingNotifier, NotificationSink
from enroll.domain.error import GatewayError
from enroll.domain.repository import IdentityRepository
from enroll.domain.service import CompletionCoordinator, StatusPoller
from enroll.domain.service.coordinator import (
    MSG_ALREADY_CREATED,
    MSG_ALREADY_EXISTS,
    MSG_COMPLETED,
    MSG_EMAIL_MISMATCH,
    MSG_VERIFICATION_EXHAUSTED,
)
from enroll.domain.value import (
    CompletionOutcome,
    InviteCode,
    NotificationLevel,
    RequestStatus,
    RequestStatusRecord,
)
from enroll.persistence.repository.inmemory import InMemoryIdentityRepository
from tests.conftest import eventually
from tests.harness import TEST_CODE, create_env_fixture

unit_env = create_env_fixture()

EMAIL = "alice@example.com"
USERNAME = "alice"
OAUTH_CODE = "ABC123"

AUTH_KEY_ERROR = GatewayError(
    "Failed to verify Stremio authentication", status_code=400, code="INVALID_AUTH_KEY"
)


async def accepted_request(env) -> MockInvitationClient:
    """Seed the mock backend with an accepted request and track it."""
    backend = await env.get(InvitationClient)
    backend.add_invitation(TEST_CODE)
    await backend.submit_request(InviteCode(root=TEST_CODE), EMAIL, USERNAME)
    backend.accept(TEST_CODE, EMAIL, USERNAME)
    backend.issue_link(TEST_CODE, EMAIL, USERNAME)

    # Give the poller its target without letting it tick
    poller = await env.get(StatusPoller)
    poller.start(EMAIL, USERNAME)
    poller.stop()
    await poller.wait()
    return backend


async def complete(coordinator, auth_key="auth-key", oauth_code=OAUTH_CODE):
    return await coordinator.complete(oauth_code, EMAIL, USERNAME, auth_key, "Family")


class TestSuccess:
    """Tests for successful completion."""

    @pytest.mark.asyncio
    async def test_completes_account(self, unit_env):
        """Should complete the request and announce it once."""
        # Arrange
        backend = await accepted_request(unit_env)
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        # Act
        result = await complete(coordinator)

        # Assert
        assert result.outcome == CompletionOutcome.COMPLETED
        assert result.message == MSG_COMPLETED
        assert backend.request(TEST_CODE, EMAIL, USERNAME).status == RequestStatus.COMPLETED
        assert backend.complete_calls == [
            {"code": TEST_CODE, "email": EMAIL, "username": USERNAME, "auth_key": "auth-key"}
        ]
        assert notifier.messages == [MSG_COMPLETED]
        assert coordinator.is_resolved(OAUTH_CODE)
        assert coordinator.confirming is False
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_listeners_receive_results(self, unit_env):
        """Should hand every classified result to subscribers."""
        await accepted_request(unit_env)
        coordinator = await unit_env.get(CompletionCoordinator)
        seen = []
        coordinator.subscribe(lambda code, result: seen.append((code, result.outcome)))

        await complete(coordinator)

        assert seen == [(OAUTH_CODE, CompletionOutcome.COMPLETED)]
        await coordinator.close()


class TestAtMostOnce:
    """Tests for the at-most-once completion guarantee."""

    @pytest.mark.asyncio
    async def test_concurrent_attempt_is_skipped(self, unit_env):
        """Should never have two calls in flight for one code."""
        # Arrange
        backend = await accepted_request(unit_env)
        backend.complete_gate = asyncio.Event()
        coordinator = await unit_env.get(CompletionCoordinator)

        # Act
        first = asyncio.create_task(complete(coordinator))
        await eventually(lambda: backend.in_flight == 1)
        second = await complete(coordinator, auth_key="other-key")
        assert coordinator.is_attempted(OAUTH_CODE)
        backend.complete_gate.set()
        first_result = await first

        # Assert
        assert second.outcome == CompletionOutcome.SKIPPED
        assert first_result.outcome == CompletionOutcome.COMPLETED
        assert backend.max_in_flight == 1
        assert len(backend.complete_calls) == 1
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_resolved_code_is_skipped(self, unit_env):
        """Should not dispatch again for a resolved code."""
        backend = await accepted_request(unit_env)
        coordinator = await unit_env.get(CompletionCoordinator)
        await complete(coordinator)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.SKIPPED
        assert len(backend.complete_calls) == 1
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_sessions_are_per_code(self, unit_env):
        """Should track each authorization code separately."""
        backend = await accepted_request(unit_env)
        backend.fail_next("complete", AUTH_KEY_ERROR)
        coordinator = await unit_env.get(CompletionCoordinator)

        await complete(coordinator, oauth_code="OLD111")
        result = await complete(coordinator, oauth_code="NEW222")

        assert result.outcome == CompletionOutcome.COMPLETED
        assert coordinator.failure_counts == {"OLD111": 1}
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_cancelled_call_releases_session(self, unit_env):
        """Should allow a new attempt when the call never got an answer."""
        backend = await accepted_request(unit_env)
        backend.complete_gate = asyncio.Event()
        coordinator = await unit_env.get(CompletionCoordinator)

        task = asyncio.create_task(complete(coordinator))
        await eventually(lambda: backend.in_flight == 1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert coordinator.is_attempted(OAUTH_CODE) is False
        assert coordinator.can_attempt(OAUTH_CODE) is True


class TestClassification:
    """Tests for completion failure classification."""

    @pytest.mark.asyncio
    async def test_email_mismatch_is_terminal_and_persisted(self, unit_env):
        """Should persist the mismatch flag and say so once."""
        # Arrange
        backend = await accepted_request(unit_env)
        backend.provider_emails["auth-key"] = "someone.else@example.com"
        coordinator = await unit_env.get(CompletionCoordinator)
        repo = await unit_env.get(IdentityRepository)
        notifier = await unit_env.get(NotificationSink)

        # Act
        result = await complete(coordinator)

        # Assert
        assert result.outcome == CompletionOutcome.EMAIL_MISMATCH
        stored = await repo.load(InviteCode(root=TEST_CODE), restore_submitted=True)
        assert stored.email_mismatch_error is True
        assert stored.submitted is True
        assert stored.email == EMAIL
        assert notifier.messages == [MSG_EMAIL_MISMATCH]
        assert (await complete(coordinator)).outcome == CompletionOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_conflict_is_success_equivalent(self, unit_env):
        """Should treat a 409 as the account already existing."""
        backend = await accepted_request(unit_env)
        backend.fail_next(
            "complete", GatewayError("USER_EXISTS", status_code=409, code="USER_EXISTS")
        )
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.ALREADY_COMPLETED
        assert result.outcome.is_success
        assert notifier.of_level(NotificationLevel.SUCCESS)[0].message == MSG_ALREADY_EXISTS
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_already_registered_message_is_success_equivalent(self, unit_env):
        """Should recognise the already-registered wording without a 409."""
        backend = await accepted_request(unit_env)
        backend.fail_next(
            "complete",
            GatewayError("User is already registered to Syncio", status_code=400),
        )
        coordinator = await unit_env.get(CompletionCoordinator)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.ALREADY_COMPLETED
        assert coordinator.is_resolved(OAUTH_CODE)
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_not_found_with_completed_request(self, unit_env):
        """Should treat a 404 as success when the request is completed."""
        backend = await accepted_request(unit_env)
        backend.mark_completed(TEST_CODE, EMAIL, USERNAME)
        backend.fail_next(
            "complete",
            GatewayError("No accepted request found", status_code=404),
        )
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.ALREADY_COMPLETED
        assert notifier.messages == [MSG_ALREADY_CREATED]
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_not_found_otherwise_is_silent(self, unit_env):
        """Should give up on the code without telling the user."""
        backend = await accepted_request(unit_env)
        backend.fail_next(
            "complete",
            GatewayError("No accepted request found", status_code=404),
        )
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.NOT_FOUND
        assert result.outcome.stops_watching
        assert notifier.notifications == []
        assert coordinator.is_resolved(OAUTH_CODE)

    @pytest.mark.asyncio
    async def test_auth_key_failures_are_capped(self, unit_env):
        """Should retry silently, then stop with a single message."""
        # Arrange
        backend = await accepted_request(unit_env)
        backend.fail_next("complete", AUTH_KEY_ERROR, times=3)
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        # Act
        outcomes = [(await complete(coordinator)).outcome for _ in range(4)]

        # Assert
        assert outcomes == [
            CompletionOutcome.RETRY,
            CompletionOutcome.RETRY,
            CompletionOutcome.EXHAUSTED,
            CompletionOutcome.SKIPPED,
        ]
        assert len(backend.complete_calls) == 3
        assert notifier.messages == [MSG_VERIFICATION_EXHAUSTED]
        assert coordinator.failure_count(OAUTH_CODE) == 3
        assert coordinator.is_exhausted(OAUTH_CODE)

    @pytest.mark.asyncio
    async def test_retry_after_auth_key_failure_can_succeed(self, unit_env):
        """Should release the code for another attempt below the cap."""
        backend = await accepted_request(unit_env)
        backend.fail_next("complete", AUTH_KEY_ERROR)
        coordinator = await unit_env.get(CompletionCoordinator)

        first = await complete(coordinator)
        second = await complete(coordinator)

        assert first.outcome == CompletionOutcome.RETRY
        assert first.failure_count == 1
        assert second.outcome == CompletionOutcome.COMPLETED
        await coordinator.close()

    @pytest.mark.asyncio
    async def test_generic_error_is_surfaced_and_retryable(self, unit_env):
        """Should show the backend message and allow a retry."""
        backend = await accepted_request(unit_env)
        backend.fail_next("complete", GatewayError("Database unavailable", status_code=500))
        coordinator = await unit_env.get(CompletionCoordinator)
        notifier = await unit_env.get(NotificationSink)

        result = await complete(coordinator)

        assert result.outcome == CompletionOutcome.RETRY
        assert result.message == "Database unavailable"
        assert notifier.of_level(NotificationLevel.ERROR)[0].message == "Database unavailable"
        assert coordinator.can_attempt(OAUTH_CODE)

    @pytest.mark.asyncio
    async def test_generic_errors_share_the_cap(self, unit_env):
        """Should stop dispatching after three failures of any kind."""
        backend = await accepted_request(unit_env)
        backend.fail_next("complete", GatewayError("Database unavailable", status_code=500))
        backend.fail_next("complete", AUTH_KEY_ERROR)
        backend.fail_next("complete", GatewayError("Database unavailable", status_code=500))
        coordinator = await unit_env.get(CompletionCoordinator)

        outcomes = [(await complete(coordinator)).outcome for _ in range(4)]

        assert outcomes[-2:] == [CompletionOutcome.EXHAUSTED, CompletionOutcome.SKIPPED]
        assert len(backend.complete_calls) == 3


class LaggingInvitationClient(MockInvitationClient):
    """Reports a completed request as accepted for a few reads."""

    def __init__(self, lag: int) -> None:
        super().__init__()
        self.lag = lag

    async def fetch_status(self, code, email, username) -> RequestStatusRecord:
        record = await super().fetch_status(code, email, username)
        if record.status == RequestStatus.COMPLETED and self.lag > 0:
            self.lag -= 1
            return record.model_copy(update={"status": RequestStatus.ACCEPTED})
        return record


class TestConfirmation:
    """Tests for the post-completion confirmation loop."""

    @pytest.mark.asyncio
    async def test_refetches_until_completed(self):
        """Should keep refetching until the backend catches up."""
        # Arrange
        code = InviteCode(root=TEST_CODE)
        backend = LaggingInvitationClient(lag=3)
        backend.add_invitation(TEST_CODE)
        await backend.submit_request(code, EMAIL, USERNAME)
        backend.accept(TEST_CODE, EMAIL, USERNAME)
        poller = StatusPoller(backend, code)
        statuses = []

        async def on_snapshot(snapshot):
            statuses.append(snapshot.status)

        poller.attach(on_snapshot)
        poller.start(EMAIL, USERNAME)
        poller.stop()
        await poller.wait()
        coordinator = CompletionCoordinator(
            code,
            backend,
            poller,
            InMemoryIdentityRepository(),
            CollectingNotifier(),
            confirm_interval=0.001,
            confirm_attempts=10,
        )

        # Act
        await complete(coordinator)
        await coordinator.wait_confirmed()

        # Assert
        assert statuses == [RequestStatus.ACCEPTED] * 3 + [RequestStatus.COMPLETED]
        assert coordinator.confirming is False

    @pytest.mark.asyncio
    async def test_confirmation_is_bounded(self):
        """Should give up after the configured number of refetches."""
        code = InviteCode(root=TEST_CODE)
        backend = LaggingInvitationClient(lag=100)
        backend.add_invitation(TEST_CODE)
        await backend.submit_request(code, EMAIL, USERNAME)
        backend.accept(TEST_CODE, EMAIL, USERNAME)
        poller = StatusPoller(backend, code)
        poller.start(EMAIL, USERNAME)
        poller.stop()
        await poller.wait()
        coordinator = CompletionCoordinator(
            code,
            backend,
            poller,
            InMemoryIdentityRepository(),
            CollectingNotifier(),
            confirm_interval=0.001,
            confirm_attempts=4,
        )

        await complete(coordinator)
        await coordinator.wait_confirmed()

        # One immediate refresh plus the bounded loop
        assert backend.status_calls == 5
