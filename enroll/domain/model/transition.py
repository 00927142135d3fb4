"""Reconciliation transitions.

Each accepted snapshot yields a ReconciliationResult carrying zero or more
tagged transitions. An empty tuple is the "unchanged" result.
"""

from typing import Literal, Union

from pydantic import Field

from enroll.domain.model.common import DomainModel
from enroll.domain.value import RequestStatus


class LinkIssued(DomainModel):
    """A new, non-null OAuth link was observed."""

    kind: Literal["link_issued"] = "link_issued"
    oauth_link: str
    oauth_code: str | None = None


class LinkCleared(DomainModel):
    """A previously seen link disappeared while the request stayed accepted.

    This is the "renewed" signal: an administrator revoked the link and a new
    one has to be generated.
    """

    kind: Literal["link_cleared"] = "link_cleared"


class CodeChanged(DomainModel):
    """Only the authorization code rotated."""

    kind: Literal["code_changed"] = "code_changed"
    oauth_code: str


class StatusChanged(DomainModel):
    kind: Literal["status_changed"] = "status_changed"
    previous: RequestStatus
    current: RequestStatus


class Completed(DomainModel):
    kind: Literal["completed"] = "completed"


Transition = Union[LinkIssued, LinkCleared, CodeChanged, StatusChanged, Completed]


class ReconciliationResult(DomainModel):
    """Outcome of applying one snapshot to the reconciler.

    Attributes:
        transitions: Transitions in rule order (empty when unchanged or stale)
        stale: The snapshot was older than the last accepted one and ignored
        generation: Generation counter after applying the snapshot
    """

    transitions: tuple[Transition, ...] = Field(default_factory=tuple)
    stale: bool = False
    generation: int = 0

    @property
    def unchanged(self) -> bool:
        return not self.transitions

    @property
    def link_rotated(self) -> bool:
        """A link was issued, cleared or its code changed."""
        return any(
            isinstance(t, (LinkIssued, LinkCleared, CodeChanged))
            for t in self.transitions
        )

    @property
    def completed(self) -> bool:
        return any(isinstance(t, Completed) for t in self.transitions)

    def has(self, transition_type: type) -> bool:
        return any(isinstance(t, transition_type) for t in self.transitions)
