"""Invitation request snapshot.

One snapshot is produced per successful status fetch. Snapshots are
immutable and ordered by `fetched_at`, the monotonic time the fetch was
issued, so a slow response can be recognised as older than one already
applied.
"""

from datetime import datetime, timezone

from enroll.domain.model.common import DomainModel
from enroll.domain.value import RequestStatus, RequestStatusRecord
from enroll.domain.value.types import UtcDatetime


class InvitationRequestSnapshot(DomainModel):
    """Backend status record at a point in time.

    An `accepted` snapshot without a link is valid: the link was cleared
    by an administrator ("renewed") or has not been generated yet.
    """

    status: RequestStatus
    oauth_link: str | None = None
    oauth_code: str | None = None
    oauth_expires_at: UtcDatetime | None = None
    group_name: str | None = None
    email: str | None = None
    username: str | None = None
    fetched_at: float
    retrieved_at: UtcDatetime

    @classmethod
    def from_record(
        cls,
        record: RequestStatusRecord,
        fetched_at: float,
        retrieved_at: datetime | None = None,
    ) -> "InvitationRequestSnapshot":
        """Build a snapshot from a backend status record."""
        return cls(
            status=record.status,
            oauth_link=record.oauth_link or None,
            oauth_code=record.oauth_code or None,
            oauth_expires_at=record.oauth_expires_at,
            group_name=record.group_name,
            email=record.email,
            username=record.username,
            fetched_at=fetched_at,
            retrieved_at=retrieved_at or datetime.now(timezone.utc),
        )

    @property
    def has_link(self) -> bool:
        return bool(self.oauth_link and self.oauth_code)

    def is_link_expired(self, now: datetime | None = None) -> bool:
        """Whether the server-issued expiry has passed."""
        if self.oauth_expires_at is None:
            return False
        return self.oauth_expires_at <= (now or datetime.now(timezone.utc))

    def is_watchable(self, now: datetime | None = None) -> bool:
        """Accepted, carrying a link and code, and not yet expired."""
        return (
            self.status == RequestStatus.ACCEPTED
            and self.has_link
            and not self.is_link_expired(now)
        )
