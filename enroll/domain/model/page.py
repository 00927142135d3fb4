"""Page state machine.

The view layer renders exactly one page per invitation code. Which one is a
pure function of the persisted identity, the last accepted snapshot and two
flags tracked by the engine (invitation availability and "renewed").
"""

from datetime import datetime, timezone
from enum import Enum

from enroll.domain.model.common import DomainModel
from enroll.domain.model.identity import PersistedIdentity
from enroll.domain.model.snapshot import InvitationRequestSnapshot
from enroll.domain.value import InvitationAvailability, RequestStatus
from enroll.domain.value.types import UtcDatetime


class PageKind(str, Enum):
    LOADING = "loading"
    REQUEST_FORM = "request_form"
    NOT_FOUND = "not_found"
    INVITATION_DISABLED = "invitation_disabled"
    EMAIL_MISMATCH = "email_mismatch"
    PENDING = "pending"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    RENEWED = "renewed"
    OAUTH_EXPIRED = "oauth_expired"
    COMPLETED = "completed"


class PageState(DomainModel):
    """Discriminated page plus the data the view needs to render it."""

    kind: PageKind
    has_link: bool = False
    oauth_link: str | None = None
    oauth_code: str | None = None
    oauth_expires_at: UtcDatetime | None = None
    group_name: str | None = None


def select_page(
    identity: PersistedIdentity,
    snapshot: InvitationRequestSnapshot | None,
    *,
    availability: InvitationAvailability = InvitationAvailability.ACTIVE,
    renewed: bool = False,
    now: datetime | None = None,
) -> PageState:
    """Select the page to render.

    Args:
        identity: Persisted identity for the invitation code
        snapshot: Last accepted status snapshot, if any
        availability: Result of the invitation check
        renewed: Reconciler's renewed flag
        now: Current time (defaults to now, UTC)

    Returns:
        The page state
    """
    now = now or datetime.now(timezone.utc)
    group_name = snapshot.group_name if snapshot else None

    if identity.email_mismatch_error:
        return PageState(kind=PageKind.EMAIL_MISMATCH, group_name=group_name)
    if availability == InvitationAvailability.NOT_FOUND:
        return PageState(kind=PageKind.NOT_FOUND)
    if snapshot is not None and snapshot.status == RequestStatus.COMPLETED:
        return PageState(kind=PageKind.COMPLETED, group_name=group_name)
    if availability == InvitationAvailability.DISABLED:
        return PageState(kind=PageKind.INVITATION_DISABLED)
    if not identity.submitted:
        return PageState(kind=PageKind.REQUEST_FORM)
    if snapshot is None or availability == InvitationAvailability.CHECKING:
        return PageState(kind=PageKind.LOADING)
    if snapshot.status == RequestStatus.PENDING:
        return PageState(kind=PageKind.PENDING, group_name=group_name)
    if snapshot.status == RequestStatus.REJECTED:
        return PageState(kind=PageKind.REJECTED, group_name=group_name)

    expired = snapshot.is_link_expired(now)
    if snapshot.oauth_link:
        return PageState(
            kind=PageKind.OAUTH_EXPIRED if expired else PageKind.ACCEPTED,
            has_link=True,
            oauth_link=snapshot.oauth_link,
            oauth_code=snapshot.oauth_code,
            oauth_expires_at=snapshot.oauth_expires_at,
            group_name=group_name,
        )
    if expired:
        kind = PageKind.OAUTH_EXPIRED
    elif renewed:
        kind = PageKind.RENEWED
    else:
        kind = PageKind.ACCEPTED
    return PageState(
        kind=kind,
        oauth_expires_at=snapshot.oauth_expires_at,
        group_name=group_name,
    )
