"""State reconciler domain service."""

import logfire

from enroll.domain.model.common import DomainModel
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
from enroll.domain.value import RequestStatus

from .base import Service


class ReconcilerState(DomainModel):
    """Observable reconciler state, comparable by value."""

    snapshot: InvitationRequestSnapshot | None = None
    oauth_link: str | None = None
    oauth_code: str | None = None
    generation: int = 0
    renewed: bool = False


class StateReconciler(Service):
    """Diffs each fetched snapshot against the last accepted one.

    Snapshots whose `fetched_at` is not strictly newer than the last accepted
    snapshot are stale and ignored, so an overlapping slow fetch can never
    roll state back.

    Rules, in order:
    1. A previously seen link disappears -> LinkCleared (renewed). Also fires
       when the very first snapshot is accepted without a link.
    2. Otherwise a new non-null link -> LinkIssued, or a new non-null code ->
       CodeChanged. The generation counter moves once per fetch.
    3. Status differs -> StatusChanged, plus Completed when it became
       completed (which also clears the renewed flag).

    The first snapshot only initializes state, rule 1 excepted.
    """

    def __init__(self) -> None:
        self._state = ReconcilerState()

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def snapshot(self) -> InvitationRequestSnapshot | None:
        return self._state.snapshot

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def renewed(self) -> bool:
        return self._state.renewed

    def reset(self) -> None:
        """Forget every observed snapshot.

        The generation counter keeps counting up so nothing captured under an
        earlier generation can become current again.
        """
        self._state = ReconcilerState(generation=self._state.generation)

    def apply(self, snapshot: InvitationRequestSnapshot) -> ReconciliationResult:
        """Apply a freshly fetched snapshot.

        Args:
            snapshot: Snapshot handed over by the status poller

        Returns:
            Transitions derived from the snapshot (empty when stale)
        """
        state = self._state
        prior = state.snapshot
        if prior is not None and snapshot.fetched_at <= prior.fetched_at:
            logfire.debug(
                "Ignoring stale snapshot",
                fetched_at=snapshot.fetched_at,
                last_fetched_at=prior.fetched_at,
            )
            return ReconciliationResult(stale=True, generation=state.generation)

        transitions: list[Transition] = []
        link, code = state.oauth_link, state.oauth_code
        generation, renewed = state.generation, state.renewed

        if prior is None:
            link, code = snapshot.oauth_link, snapshot.oauth_code
            if snapshot.status == RequestStatus.ACCEPTED and snapshot.oauth_link is None:
                transitions.append(LinkCleared())
                generation += 1
                renewed = True
        elif link is not None and snapshot.oauth_link is None:
            transitions.append(LinkCleared())
            link, code = None, None
            generation += 1
            renewed = True
        else:
            link_changed = snapshot.oauth_link is not None and snapshot.oauth_link != link
            code_changed = snapshot.oauth_code is not None and snapshot.oauth_code != code
            if link_changed:
                transitions.append(
                    LinkIssued(oauth_link=snapshot.oauth_link, oauth_code=snapshot.oauth_code)
                )
            elif code_changed:
                transitions.append(CodeChanged(oauth_code=snapshot.oauth_code))
            if link_changed or code_changed:
                generation += 1
            if snapshot.oauth_link is not None:
                link = snapshot.oauth_link
            if snapshot.oauth_code is not None:
                code = snapshot.oauth_code

        if prior is not None and snapshot.status != prior.status:
            transitions.append(StatusChanged(previous=prior.status, current=snapshot.status))
            if snapshot.status == RequestStatus.COMPLETED:
                transitions.append(Completed())
                renewed = False
        elif prior is None and snapshot.status == RequestStatus.COMPLETED:
            renewed = False

        self._state = ReconcilerState(
            snapshot=snapshot,
            oauth_link=link,
            oauth_code=code,
            generation=generation,
            renewed=renewed,
        )
        if transitions:
            logfire.info(
                "Reconciled status snapshot",
                status=snapshot.status.value,
                transitions=[t.kind for t in transitions],
                generation=generation,
            )
        return ReconciliationResult(transitions=tuple(transitions), generation=generation)
