"""Generate OAuth link use case."""

import logfire
from pydantic import BaseModel

from enroll.application.usecase.base import BaseUseCase
from enroll.domain.error import GatewayError
from enroll.domain.service import InvitationGateway, Notifier
from enroll.domain.value import InviteCode, Notification, NotificationLevel, OAuthLinkGrant


class GenerateOAuthLinkRequest(BaseModel):
    """Generate OAuth link request."""

    code: str
    email: str
    username: str


class GenerateOAuthLinkResponse(BaseModel):
    """Generate OAuth link response."""

    grant: OAuthLinkGrant | None = None
    message: str | None = None

    @property
    def issued(self) -> bool:
        return self.grant is not None


class GenerateOAuthLinkUseCase(BaseUseCase):
    """Use case for issuing a fresh OAuth link for an accepted request.

    The returned pair is informational only: the engine picks the new link
    up through status polling, so issuing twice before a poll still counts
    as one rotation per distinct pair observed.
    """

    def __init__(self, gateway: InvitationGateway, notifier: Notifier) -> None:
        """Initialize generate OAuth link use case.

        Args:
            gateway: Invitation backend
            notifier: Sink for user-visible messages
        """
        self.gateway = gateway
        self.notifier = notifier

    async def execute(self, request: GenerateOAuthLinkRequest) -> GenerateOAuthLinkResponse:
        """Generate a link.

        Args:
            request: Invitation code and the accepted request's identity

        Returns:
            The issued link, or the failure message
        """
        code = InviteCode(root=request.code)
        with logfire.span("generate_oauth_link.execute", code=str(code)):
            try:
                grant = await self.gateway.generate_oauth_link(
                    code, request.email.strip().lower(), request.username.strip()
                )
            except GatewayError as e:
                message = e.message or "Failed to generate OAuth link"
                logfire.warn("OAuth link generation failed", code=str(code), error=message)
                self.notifier.notify(Notification(level=NotificationLevel.ERROR, message=message))
                return GenerateOAuthLinkResponse(message=message)

            logfire.info(
                "OAuth link generated",
                code=str(code),
                expires_at=grant.oauth_expires_at.isoformat() if grant.oauth_expires_at else None,
            )
            return GenerateOAuthLinkResponse(grant=grant)
