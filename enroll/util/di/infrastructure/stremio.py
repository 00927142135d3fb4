"""Stremio infrastructure providers."""

from dishka import Scope, provide

from enroll.adapter.stremio.client import RealStremioLinkClient, StremioLinkClient
from enroll.config import Settings
from enroll.util.di.base import ProviderBase
from enroll.util.error import ConfigurationError


class StremioProvider(ProviderBase):
    """Stremio component base."""

    __mock_component__ = "stremio"


class ProdStremioProvider(StremioProvider):
    """Production Stremio provider."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_stremio_link_client(self, settings: Settings) -> StremioLinkClient:
        """Provide Stremio link client.

        Raises:
            ConfigurationError: If the link API or origin host is not configured
        """
        if not settings.stremio.base_url:
            raise ConfigurationError("STREMIO__BASE_URL must be configured")
        if not settings.stremio.host:
            raise ConfigurationError("STREMIO__HOST must be configured")

        return RealStremioLinkClient(
            base_url=settings.stremio.base_url,
            host=settings.stremio.host,
            origin=settings.stremio.origin,
            timeout=settings.stremio.timeout,
        )
