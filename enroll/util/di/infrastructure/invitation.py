"""Invitation backend infrastructure providers."""

from dishka import Scope, provide

from enroll.adapter.invitation.client import InvitationClient, RealInvitationClient
from enroll.config import Settings
from enroll.util.di.base import ProviderBase
from enroll.util.error import ConfigurationError


class InvitationApiProvider(ProviderBase):
    """Invitation backend component base."""

    __mock_component__ = "invitation_api"


class ProdInvitationApiProvider(InvitationApiProvider):
    """Production invitation backend provider."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_invitation_client(self, settings: Settings) -> InvitationClient:
        """Provide invitation backend client.

        Raises:
            ConfigurationError: If the backend URL is not configured
        """
        if not settings.invitation_api.base_url:
            raise ConfigurationError("INVITATION_API__BASE_URL must be configured")

        return RealInvitationClient(
            base_url=settings.invitation_api.base_url,
            timeout=settings.invitation_api.timeout,
        )
