"""Domain value objects for the invitation completion engine.

Value objects are immutable and defined by their values, not identity.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, Field, field_validator

from enroll.domain.value.common import RootValueObject, ValueObject


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the wire as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class RequestStatus(str, Enum):
    """Status of an invitation request, as reported by the backend."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.REJECTED, RequestStatus.COMPLETED)


class InvitationAvailability(str, Enum):
    """Whether the invitation link itself can still be used."""

    CHECKING = "checking"
    ACTIVE = "active"
    DISABLED = "disabled"
    NOT_FOUND = "not_found"


class CompletionOutcome(str, Enum):
    """Classified result of one completion attempt."""

    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"  # success-equivalent
    EMAIL_MISMATCH = "email_mismatch"  # terminal
    NOT_FOUND = "not_found"  # non-actionable, silent
    RETRY = "retry"  # attempt released
    EXHAUSTED = "exhausted"  # retry budget spent, terminal
    SKIPPED = "skipped"  # never dispatched

    @property
    def is_success(self) -> bool:
        return self in (CompletionOutcome.COMPLETED, CompletionOutcome.ALREADY_COMPLETED)

    @property
    def stops_watching(self) -> bool:
        return self not in (CompletionOutcome.RETRY, CompletionOutcome.SKIPPED)


class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class InviteCode(RootValueObject[str]):
    """Public identifier of an invite link."""

    @field_validator("root")
    @classmethod
    def validate_code_format(cls, v: str) -> str:
        """Validate code is a URL-safe token."""
        v = v.strip()
        if not re.match(r"^[A-Za-z0-9_-]{1,128}$", v):
            raise ValueError("Invite code must be 1-128 URL-safe characters")
        return v

    @property
    def storage_key(self) -> str:
        """Key of the persisted identity record for this code."""
        return f"invite_request_{self.root}"


class InvitationInfo(ValueObject):
    """Public view of an invitation link."""

    is_active: bool = Field(alias="isActive")
    expires_at: UtcDatetime | None = Field(default=None, alias="expiresAt")
    current_uses: int = Field(default=0, alias="currentUses")
    max_uses: int | None = Field(default=None, alias="maxUses")

    def is_disabled(self, now: datetime | None = None) -> bool:
        """Inactive, out of uses, or expired."""
        if not self.is_active:
            return True
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return True
        if self.expires_at is not None:
            return self.expires_at < (now or datetime.now(timezone.utc))
        return False


class RequestStatusRecord(ValueObject):
    """Status record returned by the backend status endpoint."""

    status: RequestStatus
    oauth_link: str | None = Field(default=None, alias="oauthLink")
    oauth_code: str | None = Field(default=None, alias="oauthCode")
    oauth_expires_at: UtcDatetime | None = Field(default=None, alias="oauthExpiresAt")
    group_name: str | None = Field(default=None, alias="groupName")
    email: str | None = None
    username: str | None = None


class OAuthLinkGrant(ValueObject):
    """Freshly issued OAuth link/code pair."""

    oauth_code: str = Field(alias="oauthCode")
    oauth_link: str = Field(alias="oauthLink")
    oauth_expires_at: UtcDatetime | None = Field(default=None, alias="oauthExpiresAt")


class ProviderUser(ValueObject):
    """Identity reported by the third-party provider."""

    username: str | None = None
    email: str | None = None


class AuthorizationCheck(ValueObject):
    """Answer to "has this code been authorized yet?"."""

    success: bool = False
    auth_key: str | None = Field(default=None, alias="authKey")
    user: ProviderUser | None = None

    @property
    def authorized(self) -> bool:
        return self.success and bool(self.auth_key)


class CompletionResult(ValueObject):
    """Result of a completion attempt."""

    outcome: CompletionOutcome
    message: str | None = None
    failure_count: int = 0


class Notification(ValueObject):
    """User-facing notification emitted for a classified outcome."""

    level: NotificationLevel
    message: str
    outcome: CompletionOutcome | None = None
