"""Check invitation use case."""

import logfire
from pydantic import BaseModel

from enroll.application.usecase.base import BaseUseCase
from enroll.domain.error import GatewayError
from enroll.domain.service import InvitationGateway
from enroll.domain.value import InvitationAvailability, InvitationInfo, InviteCode


class CheckInvitationRequest(BaseModel):
    """Check invitation request."""

    code: str


class CheckInvitationResponse(BaseModel):
    """Check invitation response."""

    availability: InvitationAvailability
    invitation: InvitationInfo | None = None


class CheckInvitationUseCase(BaseUseCase):
    """Use case for checking whether an invitation link can be used.

    Anything other than a clear answer is treated as disabled so the visitor
    is never invited to fill in a form that cannot be submitted.
    """

    def __init__(self, gateway: InvitationGateway) -> None:
        """Initialize check invitation use case.

        Args:
            gateway: Invitation backend
        """
        self.gateway = gateway

    async def execute(self, request: CheckInvitationRequest) -> CheckInvitationResponse:
        """Check an invitation.

        Args:
            request: Request with the invitation code

        Returns:
            Availability of the invitation
        """
        code = InviteCode(root=request.code)
        with logfire.span("check_invitation.execute", code=str(code)):
            try:
                invitation = await self.gateway.check_invitation(code)
            except GatewayError as e:
                if e.is_not_found:
                    logfire.info("Invitation not found", code=str(code))
                    return CheckInvitationResponse(
                        availability=InvitationAvailability.NOT_FOUND
                    )
                logfire.warn("Invitation check failed", code=str(code), error=e.message)
                return CheckInvitationResponse(availability=InvitationAvailability.DISABLED)

            availability = (
                InvitationAvailability.DISABLED
                if invitation.is_disabled()
                else InvitationAvailability.ACTIVE
            )
            return CheckInvitationResponse(availability=availability, invitation=invitation)
