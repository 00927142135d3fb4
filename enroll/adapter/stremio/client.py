"""Stremio link client implementation.

The user authorizes a short code at link.stremio.com; reading the code back
returns an auth key once they have done so.
"""

import httpx
import logfire
from pydantic import ValidationError as PydanticValidationError

from enroll.adapter.error import AuthorizationProviderError
from enroll.domain.service.gateway import AuthorizationProvider
from enroll.domain.value import AuthorizationCheck, ProviderUser


class StremioLinkClient(AuthorizationProvider):
    """Base class for Stremio link clients.

    Provides type distinction for dependency injection.
    """

    pass


class RealStremioLinkClient(StremioLinkClient):
    """Reads authorization state from the Stremio link API.

    Stremio only answers requests that identify a recognised origin, so
    every request carries `X-Requested-With` and `Origin` headers.
    """

    def __init__(
        self,
        base_url: str,
        host: str,
        origin: str,
        timeout: float = 10.0,
    ) -> None:
        """Initialize Stremio link client.

        Args:
            base_url: Stremio link API base URL
            host: Host sent as X-Requested-With
            origin: Origin header value
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.host = host
        self.origin = origin
        self.timeout = timeout
        self.read_url = f"{self.base_url}/api/v2/read"

    async def check_authorization(self, oauth_code: str) -> AuthorizationCheck:
        """Ask Stremio whether the code has been authorized.

        Unusable answers are logged and reported as not authorized; the next
        poll simply asks again.

        Args:
            oauth_code: Code shown to the user

        Returns:
            Authorization state for the code
        """
        try:
            return await self._read(oauth_code)
        except AuthorizationProviderError as e:
            logfire.debug("Stremio link read skipped", oauth_code=oauth_code, error=str(e))
            return AuthorizationCheck()

    async def _read(self, oauth_code: str) -> AuthorizationCheck:
        """Read the code from the link API.

        Raises:
            AuthorizationProviderError: If the response cannot be used
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self.read_url,
                    params={"type": "Read", "code": oauth_code},
                    headers={
                        "X-Requested-With": self.host,
                        "Origin": self.origin,
                    },
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise AuthorizationProviderError(f"HTTP error reading link code: {e}") from e

        if response.status_code != 200:
            raise AuthorizationProviderError(f"Link read failed: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise AuthorizationProviderError("Link read returned invalid JSON") from e

        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise AuthorizationProviderError("Link read returned no result")

        user = result.get("user")
        try:
            return AuthorizationCheck(
                success=bool(result.get("success")),
                auth_key=result.get("authKey") or None,
                user=ProviderUser.model_validate(user) if isinstance(user, dict) else None,
            )
        except PydanticValidationError as e:
            raise AuthorizationProviderError(f"Unexpected link read result: {e}") from e


class MockStremioLinkClient(StremioLinkClient):
    """Mock Stremio link client for testing.

    Codes are pending until `authorize` is called for them.
    """

    def __init__(self) -> None:
        self._authorized: dict[str, AuthorizationCheck] = {}
        self.read_calls: list[str] = []
        self.fail_reads = False

    def authorize(
        self,
        oauth_code: str,
        auth_key: str = "mock-auth-key",
        username: str | None = "mockuser",
        email: str | None = "mock@stremio.com",
    ) -> None:
        """Simulate the user authorizing a code."""
        self._authorized[oauth_code] = AuthorizationCheck(
            success=True,
            auth_key=auth_key,
            user=ProviderUser(username=username, email=email),
        )

    def watched_codes(self) -> set[str]:
        return set(self.read_calls)

    async def check_authorization(self, oauth_code: str) -> AuthorizationCheck:
        """Return the scripted authorization state for a code."""
        self.read_calls.append(oauth_code)
        if self.fail_reads:
            return AuthorizationCheck()
        return self._authorized.get(oauth_code, AuthorizationCheck())
