"""Stremio link adapter."""

from .client import (
    MockStremioLinkClient,
    RealStremioLinkClient,
    StremioLinkClient,
)

__all__ = ["StremioLinkClient", "RealStremioLinkClient", "MockStremioLinkClient"]
