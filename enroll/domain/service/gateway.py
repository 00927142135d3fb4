"""Interfaces of the two external sources of truth."""

from enroll.domain.value import (
    AuthorizationCheck,
    InvitationInfo,
    InviteCode,
    OAuthLinkGrant,
    RequestStatusRecord,
)


class InvitationGateway:
    """Invitation backend interface.

    Failures are raised as `GatewayError` (with the backend's status code and
    error discriminator) or `GatewayUnavailableError` for transport failures.
    """

    async def check_invitation(self, code: InviteCode) -> InvitationInfo:
        """Fetch the public view of an invitation link.

        Args:
            code: Invitation code

        Returns:
            Invitation availability information
        """
        raise NotImplementedError

    async def fetch_status(
        self, code: InviteCode, email: str, username: str
    ) -> RequestStatusRecord:
        """Fetch the status record of the request made with this identity.

        Args:
            code: Invitation code
            email: Email the request was submitted with
            username: Username the request was submitted with

        Returns:
            Current status record
        """
        raise NotImplementedError

    async def submit_request(self, code: InviteCode, email: str, username: str) -> None:
        """Submit a new request against an invitation.

        Args:
            code: Invitation code
            email: Requested email
            username: Requested username
        """
        raise NotImplementedError

    async def generate_oauth_link(
        self, code: InviteCode, email: str, username: str
    ) -> OAuthLinkGrant:
        """Issue a fresh OAuth link/code pair for an accepted request.

        Args:
            code: Invitation code
            email: Email of the accepted request
            username: Username of the accepted request

        Returns:
            The newly issued link/code pair
        """
        raise NotImplementedError

    async def complete(
        self,
        code: InviteCode,
        email: str,
        username: str,
        auth_key: str,
        group_name: str | None = None,
    ) -> None:
        """Exchange a provider auth key for a created account.

        Args:
            code: Invitation code
            email: Email of the accepted request
            username: Username of the accepted request
            auth_key: Auth key returned by the provider
            group_name: Group the new account joins
        """
        raise NotImplementedError


class AuthorizationProvider:
    """Third-party authorization endpoint interface.

    Best-effort: unusable responses are reported as not authorized.
    """

    async def check_authorization(self, oauth_code: str) -> AuthorizationCheck:
        """Ask whether the user has authorized this code yet.

        Args:
            oauth_code: Authorization code shown to the user

        Returns:
            Authorization state for the code
        """
        raise NotImplementedError
