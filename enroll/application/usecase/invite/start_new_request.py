"""Start new request use case."""

import logfire
from pydantic import BaseModel

from enroll.application.usecase.base import BaseUseCase
from enroll.application.usecase.invite.check_invitation import (
    CheckInvitationRequest,
    CheckInvitationUseCase,
)
from enroll.domain.repository import IdentityRepository
from enroll.domain.value import InvitationAvailability, InviteCode


class StartNewRequestRequest(BaseModel):
    """Start new request request."""

    code: str


class StartNewRequestResponse(BaseModel):
    """Start new request response."""

    availability: InvitationAvailability


class StartNewRequestUseCase(BaseUseCase):
    """Use case for abandoning the current request and starting over.

    This is the only way out of an email mismatch: the persisted identity,
    including the mismatch flag, is forgotten.
    """

    def __init__(
        self,
        repository: IdentityRepository,
        check_invitation: CheckInvitationUseCase,
    ) -> None:
        """Initialize start new request use case.

        Args:
            repository: Identity store
            check_invitation: Invitation availability check
        """
        self.repository = repository
        self.check_invitation = check_invitation

    async def execute(self, request: StartNewRequestRequest) -> StartNewRequestResponse:
        code = InviteCode(root=request.code)
        await self.repository.clear(code)
        logfire.info("Persisted identity cleared for new request", code=str(code))
        checked = await self.check_invitation.execute(CheckInvitationRequest(code=str(code)))
        return StartNewRequestResponse(availability=checked.availability)
