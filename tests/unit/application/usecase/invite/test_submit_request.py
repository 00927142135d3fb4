"""Tests for submit request use case."""

import pytest

from enroll.adapter.invitation.client import InvitationClient
from enroll.adapter.notification.sink import NotificationSink
from enroll.application.usecase.invite import (
    SubmitOutcome,
    SubmitRequestRequest,
    SubmitRequestUseCase,
)
from enroll.domain.error import GatewayError
from enroll.domain.repository import IdentityRepository
from enroll.domain.value import InviteCode, NotificationLevel
from tests.harness import TEST_CODE, create_env_fixture

unit_env = create_env_fixture()

CODE = InviteCode(root=TEST_CODE)


def submit(email="alice@example.com", username="alice") -> SubmitRequestRequest:
    return SubmitRequestRequest(code=TEST_CODE, email=email, username=username)


class TestSubmitRequestUseCase:
    """Tests for SubmitRequestUseCase."""

    @pytest.mark.asyncio
    async def test_submit_persists_identity(self, unit_env):
        """Should submit a normalized identity and mark it submitted."""
        # Arrange
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        repo = await unit_env.get(IdentityRepository)
        notifier = await unit_env.get(NotificationSink)
        use_case = await unit_env.get(SubmitRequestUseCase)

        # Act
        response = await use_case.execute(submit(email="  Alice@Example.COM ", username=" alice "))

        # Assert
        assert response.outcome == SubmitOutcome.SUBMITTED
        assert response.identity.email == "alice@example.com"
        assert response.identity.username == "alice"
        assert backend.request(TEST_CODE, "alice@example.com", "alice") is not None
        stored = await repo.load(CODE, restore_submitted=True)
        assert stored.submitted is True
        assert notifier.messages == ["Request submitted successfully"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,username", [("", "alice"), ("alice@example.com", "   ")])
    async def test_empty_fields_rejected(self, unit_env, email, username):
        """Should reject empty fields before calling the backend."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit(email=email, username=username))

        assert response.outcome == SubmitOutcome.INVALID
        assert response.message == "Please fill in all fields"
        assert backend.request(TEST_CODE, "alice@example.com", "alice") is None

    @pytest.mark.asyncio
    async def test_duplicate_request_counts_as_submitted(self, unit_env):
        """Should resume an existing request instead of failing."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        await backend.submit_request(CODE, "alice@example.com", "alice")
        repo = await unit_env.get(IdentityRepository)
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit())

        assert response.outcome == SubmitOutcome.DUPLICATE
        assert response.outcome.is_submitted
        assert (await repo.load(CODE, restore_submitted=True)).submitted is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,fields",
        [
            ("EMAIL_EXISTS", {"email"}),
            ("USERNAME_EXISTS", {"username"}),
            ("EMAIL_AND_USERNAME_EXIST", {"email", "username"}),
        ],
    )
    async def test_taken_identity_reports_field_errors(self, unit_env, code, fields):
        """Should map 409 discriminators onto the offending fields."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        backend.fail_next("submit_request", GatewayError(code, status_code=409, code=code))
        repo = await unit_env.get(IdentityRepository)
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit())

        assert response.outcome == SubmitOutcome.FIELD_ERRORS
        assert set(response.field_errors) == fields
        assert (await repo.load(CODE, restore_submitted=True)).submitted is False

    @pytest.mark.asyncio
    async def test_backend_message_used_for_field_error(self, unit_env):
        """Should prefer the backend's wording for a field error."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        backend.fail_next(
            "submit_request",
            GatewayError("Username alice is taken", status_code=409, code="USERNAME_EXISTS"),
        )
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit())

        assert response.field_errors == {"username": "Username alice is taken"}

    @pytest.mark.asyncio
    async def test_inactive_invitation(self, unit_env):
        """Should report a deactivated invitation."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE, is_active=False)
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit())

        assert response.outcome == SubmitOutcome.INVITATION_DISABLED

    @pytest.mark.asyncio
    async def test_other_failure(self, unit_env):
        """Should surface any other failure as an error notification."""
        backend = await unit_env.get(InvitationClient)
        backend.add_invitation(TEST_CODE)
        backend.fail_next("submit_request", GatewayError("Database unavailable", status_code=500))
        notifier = await unit_env.get(NotificationSink)
        use_case = await unit_env.get(SubmitRequestUseCase)

        response = await use_case.execute(submit())

        assert response.outcome == SubmitOutcome.FAILED
        assert notifier.of_level(NotificationLevel.ERROR)[0].message == "Database unavailable"
