"""Domain value objects for the invitation completion engine."""

from enroll.domain.value.types import (
    AuthorizationCheck,
    CompletionOutcome,
    CompletionResult,
    InvitationAvailability,
    InvitationInfo,
    InviteCode,
    Notification,
    NotificationLevel,
    OAuthLinkGrant,
    ProviderUser,
    RequestStatus,
    RequestStatusRecord,
)

__all__ = [
    "AuthorizationCheck",
    "CompletionOutcome",
    "CompletionResult",
    "InvitationAvailability",
    "InvitationInfo",
    "InviteCode",
    "Notification",
    "NotificationLevel",
    "OAuthLinkGrant",
    "ProviderUser",
    "RequestStatus",
    "RequestStatusRecord",
]
