"""Domain model entities for the invitation completion engine."""

from enroll.domain.model.identity import PersistedIdentity
from enroll.domain.model.page import PageKind, PageState, select_page
from enroll.domain.model.session import PollingSession
from enroll.domain.model.snapshot import InvitationRequestSnapshot
from enroll.domain.model.transition import (
    CodeChanged,
    Completed,
    LinkCleared,
    LinkIssued,
    ReconciliationResult,
    StatusChanged,
    Transition,
)

__all__ = [
    "InvitationRequestSnapshot",
    "PersistedIdentity",
    "PollingSession",
    "ReconciliationResult",
    "Transition",
    "LinkIssued",
    "LinkCleared",
    "CodeChanged",
    "StatusChanged",
    "Completed",
    "PageKind",
    "PageState",
    "select_page",
]
