"""Invitation backend adapter."""

from .client import (
    InvitationClient,
    MockInvitationClient,
    RealInvitationClient,
)

__all__ = ["InvitationClient", "RealInvitationClient", "MockInvitationClient"]
