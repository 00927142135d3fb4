"""Submit invitation request use case."""

from enum import Enum

import logfire
from pydantic import BaseModel, Field

from enroll.application.usecase.base import BaseUseCase
from enroll.domain.error import GatewayError
from enroll.domain.model import PersistedIdentity
from enroll.domain.repository import IdentityRepository
from enroll.domain.service import InvitationGateway, Notifier
from enroll.domain.value import InviteCode, Notification, NotificationLevel

# 409 discriminators naming the field that is already taken
_FIELD_CONFLICTS = {
    "EMAIL_EXISTS": {"email": "This email is already registered"},
    "USERNAME_EXISTS": {"username": "This username is already taken"},
    "EMAIL_AND_USERNAME_EXIST": {
        "email": "This email is already registered",
        "username": "This username is already taken",
    },
}


class SubmitOutcome(str, Enum):
    SUBMITTED = "submitted"
    DUPLICATE = "duplicate"  # request already existed, treated as submitted
    FIELD_ERRORS = "field_errors"
    INVITATION_DISABLED = "invitation_disabled"
    INVALID = "invalid"
    FAILED = "failed"

    @property
    def is_submitted(self) -> bool:
        return self in (SubmitOutcome.SUBMITTED, SubmitOutcome.DUPLICATE)


class SubmitRequestRequest(BaseModel):
    """Submit invitation request request."""

    code: str
    email: str
    username: str


class SubmitRequestResponse(BaseModel):
    """Submit invitation request response."""

    outcome: SubmitOutcome
    identity: PersistedIdentity | None = None
    field_errors: dict[str, str] = Field(default_factory=dict)
    message: str | None = None


class SubmitRequestUseCase(BaseUseCase):
    """Use case for submitting an email/username against an invitation.

    The identity is persisted with `submitted=true` only once the backend
    has taken the request (or told us it already had it).
    """

    def __init__(
        self,
        gateway: InvitationGateway,
        repository: IdentityRepository,
        notifier: Notifier,
    ) -> None:
        """Initialize submit request use case.

        Args:
            gateway: Invitation backend
            repository: Identity store
            notifier: Sink for user-visible messages
        """
        self.gateway = gateway
        self.repository = repository
        self.notifier = notifier

    async def execute(self, request: SubmitRequestRequest) -> SubmitRequestResponse:
        """Submit a request.

        Args:
            request: Invitation code and claimed identity

        Returns:
            Submission outcome
        """
        code = InviteCode(root=request.code)
        email = request.email.strip().lower()
        username = request.username.strip()
        if not email or not username:
            return self._fail(SubmitOutcome.INVALID, "Please fill in all fields")

        with logfire.span("submit_request.execute", code=str(code), username=username):
            try:
                await self.gateway.submit_request(code, email, username)
            except GatewayError as e:
                return await self._handle_error(code, email, username, e)

            identity = await self._mark_submitted(code, email, username)
            self._notify(NotificationLevel.SUCCESS, "Request submitted successfully")
            return SubmitRequestResponse(outcome=SubmitOutcome.SUBMITTED, identity=identity)

    async def _handle_error(
        self, code: InviteCode, email: str, username: str, error: GatewayError
    ) -> SubmitRequestResponse:
        if error.is_conflict:
            conflicts = _FIELD_CONFLICTS.get(error.code or "")
            if conflicts is not None:
                # Backend message wins over the default wording for each field
                field_errors = {
                    field: (error.message if error.message != error.code else default)
                    for field, default in conflicts.items()
                }
                logfire.info("Request rejected, identity taken", code=str(code), error=error.code)
                return SubmitRequestResponse(
                    outcome=SubmitOutcome.FIELD_ERRORS, field_errors=field_errors
                )
            if error.mentions("request already exists"):
                logfire.info("Request already exists, resuming", code=str(code))
                identity = await self._mark_submitted(code, email, username)
                return SubmitRequestResponse(outcome=SubmitOutcome.DUPLICATE, identity=identity)

        if error.mentions("not active") or (error.status_code == 400 and error.mentions("invitation")):
            return self._fail(SubmitOutcome.INVITATION_DISABLED, error.message)

        logfire.warn("Request submission failed", code=str(code), error=error.message)
        return self._fail(SubmitOutcome.FAILED, error.message or "Failed to submit request")

    async def _mark_submitted(
        self, code: InviteCode, email: str, username: str
    ) -> PersistedIdentity:
        return await self.repository.save(
            code,
            email=email,
            username=username,
            submitted=True,
            email_mismatch_error=False,
        )

    def _fail(self, outcome: SubmitOutcome, message: str) -> SubmitRequestResponse:
        self._notify(NotificationLevel.ERROR, message)
        return SubmitRequestResponse(outcome=outcome, message=message)

    def _notify(self, level: NotificationLevel, message: str) -> None:
        self.notifier.notify(Notification(level=level, message=message))
