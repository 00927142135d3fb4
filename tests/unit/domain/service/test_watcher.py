"""Tests for the OAuth watcher."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from enroll.adapter.invitation.client import InvitationClient
from enroll.adapter.stremio.client import StremioLinkClient
from enroll.domain.error import GatewayError
from enroll.domain.model import PersistedIdentity
from enroll.domain.service import CompletionCoordinator, OAuthWatcher, StatusPoller
from enroll.domain.value import AuthorizationCheck, InviteCode, RequestStatus
from tests.conftest import eventually, make_snapshot
from tests.harness import TEST_CODE, create_env_fixture

unit_env = create_env_fixture()

EMAIL = "alice@example.com"
USERNAME = "alice"
IDENTITY = PersistedIdentity(email=EMAIL, username=USERNAME, submitted=True)


async def issued_code(env) -> str:
    """Seed an accepted request with a live link and return its code."""
    backend = await env.get(InvitationClient)
    backend.add_invitation(TEST_CODE)
    await backend.submit_request(InviteCode(root=TEST_CODE), EMAIL, USERNAME)
    backend.accept(TEST_CODE, EMAIL, USERNAME)
    poller = await env.get(StatusPoller)
    poller.start(EMAIL, USERNAME)
    poller.stop()
    await poller.wait()
    return backend.issue_link(TEST_CODE, EMAIL, USERNAME).oauth_code


async def shutdown(env) -> None:
    watcher = await env.get(OAuthWatcher)
    watcher.stop()
    await watcher.wait()
    await (await env.get(CompletionCoordinator)).close()


class TestEligibility:
    """Tests for when the watcher may run."""

    @pytest.mark.asyncio
    async def test_runs_for_live_code(self, unit_env):
        """Should watch an accepted snapshot with an unexpired code."""
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(make_snapshot(oauth_code="ABC123"), IDENTITY, generation=1)

        assert watcher.running
        assert watcher.oauth_code == "ABC123"
        assert watcher.token.generation == 1
        await shutdown(unit_env)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "snapshot",
        [
            None,
            make_snapshot(status=RequestStatus.PENDING),
            make_snapshot(oauth_code=None),
            make_snapshot(status=RequestStatus.COMPLETED, oauth_code="ABC123"),
            make_snapshot(
                oauth_code="ABC123",
                oauth_expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
            ),
        ],
    )
    async def test_does_not_run_without_live_code(self, unit_env, snapshot):
        """Should stay idle unless there is a live code to watch."""
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(snapshot, IDENTITY, generation=1)

        assert not watcher.running
        assert watcher.oauth_code is None

    @pytest.mark.asyncio
    async def test_does_not_run_after_email_mismatch(self, unit_env):
        """Should stay idle once a mismatch is recorded."""
        watcher = await unit_env.get(OAuthWatcher)
        identity = IDENTITY.model_copy(update={"email_mismatch_error": True})

        watcher.sync(make_snapshot(oauth_code="ABC123"), identity, generation=1)

        assert not watcher.running

    @pytest.mark.asyncio
    async def test_defers_to_external_watcher(self, unit_env):
        """Should never poll a code someone else is watching."""
        watcher = await unit_env.get(OAuthWatcher)
        provider = await unit_env.get(StremioLinkClient)
        watcher.set_external_handler_check(lambda code: code == "ABC123")

        watcher.sync(make_snapshot(oauth_code="ABC123"), IDENTITY, generation=1)

        assert not watcher.running
        assert provider.read_calls == []

    @pytest.mark.asyncio
    async def test_does_not_run_for_exhausted_code(self, unit_env):
        """Should stop permanently once the failure cap is reached."""
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        backend.fail_next(
            "complete",
            GatewayError("Failed to verify", status_code=400, code="INVALID_AUTH_KEY"),
            times=3,
        )
        coordinator = await unit_env.get(CompletionCoordinator)
        for _ in range(3):
            await coordinator.complete(code, EMAIL, USERNAME, "bad-key")
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)

        assert not watcher.running


class TestRotation:
    """Tests for code rotation and generation tokens."""

    @pytest.mark.asyncio
    async def test_same_code_and_generation_keeps_timer(self, unit_env):
        """Should not restart for a snapshot that changed nothing."""
        watcher = await unit_env.get(OAuthWatcher)
        watcher.sync(make_snapshot(oauth_code="ABC123", fetched_at=1), IDENTITY, generation=1)
        token = watcher.token

        watcher.sync(make_snapshot(oauth_code="ABC123", fetched_at=2), IDENTITY, generation=1)

        assert watcher.token is token
        assert not token.cancelled
        await shutdown(unit_env)

    @pytest.mark.asyncio
    async def test_rotation_cancels_previous_token(self, unit_env):
        """Should invalidate the old timer and watch only the new code."""
        # Arrange
        watcher = await unit_env.get(OAuthWatcher)
        provider = await unit_env.get(StremioLinkClient)
        watcher.sync(make_snapshot(oauth_code="OLD111", fetched_at=1), IDENTITY, generation=1)
        old_token = watcher.token
        await eventually(lambda: "OLD111" in provider.read_calls)

        # Act
        watcher.sync(make_snapshot(oauth_code="NEW222", fetched_at=2), IDENTITY, generation=2)
        provider.read_calls.clear()
        await eventually(lambda: len(provider.read_calls) >= 3)

        # Assert
        assert old_token.cancelled
        assert watcher.token.generation == 2
        assert set(provider.read_calls) == {"NEW222"}
        await shutdown(unit_env)


class TestCompletion:
    """Tests for handing an authorization to the coordinator."""

    @pytest.mark.asyncio
    async def test_completes_once_authorized(self, unit_env):
        """Should complete exactly once and stop watching."""
        # Arrange
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        provider = await unit_env.get(StremioLinkClient)
        watcher = await unit_env.get(OAuthWatcher)
        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)

        # Act
        provider.authorize(code, auth_key="real-key")
        await eventually(lambda: not watcher.running)

        # Assert
        assert len(backend.complete_calls) == 1
        assert backend.complete_calls[0]["auth_key"] == "real-key"
        assert backend.request(TEST_CODE, EMAIL, USERNAME).status == RequestStatus.COMPLETED
        await shutdown(unit_env)

    @pytest.mark.asyncio
    async def test_unauthorized_code_keeps_polling(self, unit_env):
        """Should keep asking until the user authorizes."""
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        provider = await unit_env.get(StremioLinkClient)
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)
        await eventually(lambda: len(provider.read_calls) >= 3)

        assert watcher.running
        assert backend.complete_calls == []
        await shutdown(unit_env)

    @pytest.mark.asyncio
    async def test_identity_falls_back_to_provider_user(self, unit_env):
        """Should use the provider's user when nothing else is known."""
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        provider = await unit_env.get(StremioLinkClient)
        watcher = await unit_env.get(OAuthWatcher)
        snapshot = make_snapshot(oauth_code=code, email=None, username=None)

        watcher.sync(snapshot, PersistedIdentity(), generation=1)
        provider.authorize(code, username=USERNAME, email="Alice@Example.com")
        await eventually(lambda: backend.complete_calls)

        assert backend.complete_calls[0]["email"] == EMAIL
        assert backend.complete_calls[0]["username"] == USERNAME
        await shutdown(unit_env)

    @pytest.mark.asyncio
    async def test_submitted_identity_wins(self, unit_env):
        """Should complete with the reviewed request, not the provider's user."""
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        provider = await unit_env.get(StremioLinkClient)
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)
        provider.authorize(code, username="someone", email="someone@example.com")
        await eventually(lambda: backend.complete_calls)

        assert backend.complete_calls[0]["email"] == EMAIL
        assert backend.complete_calls[0]["username"] == USERNAME
        await shutdown(unit_env)

    @pytest.mark.asyncio
    async def test_retryable_failure_keeps_watching(self, unit_env):
        """Should keep the timer alive after a retryable failure."""
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        backend.fail_next(
            "complete",
            GatewayError("Failed to verify", status_code=400, code="INVALID_AUTH_KEY"),
        )
        provider = await unit_env.get(StremioLinkClient)
        watcher = await unit_env.get(OAuthWatcher)

        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)
        provider.authorize(code)
        await eventually(lambda: not watcher.running)

        assert len(backend.complete_calls) == 2
        assert backend.request(TEST_CODE, EMAIL, USERNAME).status == RequestStatus.COMPLETED
        await shutdown(unit_env)


class TestExpiry:
    """Tests for link expiry while watching."""

    @pytest.mark.asyncio
    async def test_stops_silently_on_expiry(self, unit_env):
        """Should stop without completing once the link expires."""
        # Arrange
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        provider = await unit_env.get(StremioLinkClient)
        coordinator = await unit_env.get(CompletionCoordinator)
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=5)
        now = [expires_at - timedelta(seconds=1)]
        watcher = OAuthWatcher(provider, coordinator, interval=0.01, clock=lambda: now[0])
        watcher.sync(
            make_snapshot(oauth_code=code, oauth_expires_at=expires_at), IDENTITY, generation=1
        )
        assert watcher.running

        # Act
        now[0] = expires_at + timedelta(seconds=1)
        provider.authorize(code)
        await eventually(lambda: not watcher.running)

        # Assert
        assert backend.complete_calls == []
        await watcher.wait()


class GatedLinkClient(StremioLinkClient):
    """Link client that reports an authorization only once released."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def check_authorization(self, oauth_code: str) -> AuthorizationCheck:
        self.entered.set()
        await self.release.wait()
        return AuthorizationCheck(success=True, auth_key="real-key")


class TestCompletedDuringCheck:
    """Tests for a request completing while the provider is being asked."""

    @pytest.mark.asyncio
    async def test_completed_meanwhile_is_not_completed_again(self, unit_env):
        """Should drop the authorization if the request completed in flight."""
        # Arrange
        code = await issued_code(unit_env)
        backend = await unit_env.get(InvitationClient)
        coordinator = await unit_env.get(CompletionCoordinator)
        provider = GatedLinkClient()
        watcher = OAuthWatcher(provider, coordinator, interval=0.01)
        watcher.sync(make_snapshot(oauth_code=code), IDENTITY, generation=1)
        await asyncio.wait_for(provider.entered.wait(), timeout=2.0)

        # Act: the status flips to completed while the read is outstanding
        watcher._snapshot = make_snapshot(
            status=RequestStatus.COMPLETED, oauth_code=code, fetched_at=2.0
        )
        provider.release.set()
        await eventually(lambda: not watcher.running)

        # Assert
        assert backend.complete_calls == []
        assert not coordinator.is_attempted(code)
        watcher.stop()
        await watcher.wait()
        await coordinator.close()
