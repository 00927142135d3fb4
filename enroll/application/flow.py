"""Invitation request flow.

Wires the engine components together for one invitation code, the way a
single open invitation page would: the status poller feeds the reconciler,
every accepted reconciliation re-evaluates the OAuth watcher, and completion
outcomes flow back into the identity and the selected page.
"""

from collections.abc import Callable

import logfire

from enroll.application.usecase.invite import (
    CheckInvitationRequest,
    CheckInvitationUseCase,
    GenerateOAuthLinkRequest,
    GenerateOAuthLinkResponse,
    GenerateOAuthLinkUseCase,
    StartNewRequestRequest,
    StartNewRequestResponse,
    StartNewRequestUseCase,
    SubmitOutcome,
    SubmitRequestRequest,
    SubmitRequestResponse,
    SubmitRequestUseCase,
)
from enroll.domain.error import ValidationError
from enroll.domain.model import (
    InvitationRequestSnapshot,
    PageState,
    PersistedIdentity,
    select_page,
)
from enroll.domain.repository import IdentityRepository
from enroll.domain.service import (
    CompletionCoordinator,
    OAuthWatcher,
    StateReconciler,
    StatusPoller,
)
from enroll.domain.value import (
    CompletionOutcome,
    CompletionResult,
    InvitationAvailability,
    InviteCode,
    RequestStatus,
)

PageListener = Callable[[PageState], None]


class InvitationRequestFlow:
    """Engine facade for one invitation code.

    Lifecycle: `start()` restores the persisted identity and checks the
    invitation; polling begins once a request is known to be submitted.
    `close()` cancels every timer the flow owns.
    """

    def __init__(
        self,
        code: InviteCode,
        repository: IdentityRepository,
        reconciler: StateReconciler,
        poller: StatusPoller,
        watcher: OAuthWatcher,
        coordinator: CompletionCoordinator,
        check_invitation: CheckInvitationUseCase,
        submit_request: SubmitRequestUseCase,
        generate_oauth_link: GenerateOAuthLinkUseCase,
        start_new_request: StartNewRequestUseCase,
        restore_submitted: bool = True,
    ) -> None:
        self.code = code
        self.repository = repository
        self.reconciler = reconciler
        self.poller = poller
        self.watcher = watcher
        self.coordinator = coordinator
        self._check_invitation = check_invitation
        self._submit_request = submit_request
        self._generate_oauth_link = generate_oauth_link
        self._start_new_request = start_new_request
        self._restore_submitted = restore_submitted

        self._identity = PersistedIdentity()
        self._availability = InvitationAvailability.CHECKING
        self._field_errors: dict[str, str] = {}
        self._external_codes: set[str] = set()
        self._listeners: list[PageListener] = []
        self._last_page: PageState | None = None
        self._started = False
        self._closed = False

        self.poller.attach(
            self._on_snapshot,
            on_not_found=self._on_not_found,
            on_disabled=self._on_disabled,
        )
        self.watcher.set_external_handler_check(self.is_externally_handled)
        self.coordinator.subscribe(self._on_completion)

    # State

    @property
    def identity(self) -> PersistedIdentity:
        return self._identity

    @property
    def snapshot(self) -> InvitationRequestSnapshot | None:
        return self.reconciler.snapshot

    @property
    def generation(self) -> int:
        return self.reconciler.generation

    @property
    def availability(self) -> InvitationAvailability:
        return self._availability

    @property
    def field_errors(self) -> dict[str, str]:
        return dict(self._field_errors)

    @property
    def page(self) -> PageState:
        return select_page(
            self._identity,
            self.reconciler.snapshot,
            availability=self._availability,
            renewed=self.reconciler.renewed,
        )

    def subscribe(self, listener: PageListener) -> None:
        """Register a listener called whenever the selected page changes."""
        self._listeners.append(listener)

    # Lifecycle

    async def start(self) -> PageState:
        """Restore the persisted identity, check the invitation, start polling.

        Returns:
            The initial page
        """
        if self._started:
            raise ValidationError(f"Flow for {self.code} already started")
        self._started = True

        self._identity = await self.repository.load(
            self.code, restore_submitted=self._restore_submitted
        )
        checked = await self._check_invitation.execute(
            CheckInvitationRequest(code=str(self.code))
        )
        self._availability = checked.availability
        logfire.info(
            "Invitation flow started",
            code=str(self.code),
            availability=self._availability.value,
            submitted=self._identity.submitted,
        )
        self._start_polling()
        self._publish()
        return self.page

    async def close(self) -> None:
        """Stop polling, watching and confirming."""
        self._closed = True
        self.poller.stop()
        self.watcher.stop()
        await self.coordinator.close()
        await self.poller.wait()
        await self.watcher.wait()
        logfire.debug("Invitation flow closed", code=str(self.code))

    # User actions

    async def update_identity(self, email: str, username: str) -> PersistedIdentity:
        """Record what the visitor typed into the request form.

        Raises:
            ValidationError: If a request was already submitted
        """
        if self._identity.submitted:
            raise ValidationError("Request already submitted, start a new request to change it")
        self._field_errors = {}
        # Typing never counts as a submission, whatever was stored before
        self._identity = await self.repository.save(
            self.code, email=email, username=username, submitted=False
        )
        return self._identity

    async def submit(self) -> SubmitRequestResponse:
        """Submit the typed identity as a request."""
        response = await self._submit_request.execute(
            SubmitRequestRequest(
                code=str(self.code),
                email=self._identity.email,
                username=self._identity.username,
            )
        )
        if response.outcome.is_submitted and response.identity is not None:
            self._identity = response.identity
            self._field_errors = {}
            self.reconciler.reset()
            self._start_polling()
        elif response.outcome == SubmitOutcome.FIELD_ERRORS:
            self._field_errors = dict(response.field_errors)
        elif response.outcome == SubmitOutcome.INVITATION_DISABLED:
            self._availability = InvitationAvailability.DISABLED
        self._publish()
        return response

    async def generate_oauth_link(self) -> GenerateOAuthLinkResponse:
        """Ask the backend for a fresh OAuth link, then refetch the status.

        The generation counter only moves once polling observes the new pair.
        """
        email, username = self._request_identity()
        response = await self._generate_oauth_link.execute(
            GenerateOAuthLinkRequest(code=str(self.code), email=email, username=username)
        )
        if response.issued:
            await self.poller.refresh()
        return response

    async def start_new_request(self) -> StartNewRequestResponse:
        """Forget the current request and go back to the request form."""
        self.poller.stop()
        self.watcher.stop()
        self.reconciler.reset()
        response = await self._start_new_request.execute(
            StartNewRequestRequest(code=str(self.code))
        )
        self._identity = PersistedIdentity()
        self._field_errors = {}
        self._availability = response.availability
        self._publish()
        return response

    async def submit_auth_key(self, auth_key: str) -> CompletionResult:
        """Complete with an auth key obtained outside the watcher.

        Goes through the same coordinator, so it cannot race the watcher
        into a second completion call for the same code.

        Raises:
            ValidationError: If there is no live authorization code or identity
        """
        snapshot = self.reconciler.snapshot
        if not auth_key:
            raise ValidationError("Auth key is required")
        if snapshot is None or snapshot.status != RequestStatus.ACCEPTED or not snapshot.oauth_code:
            raise ValidationError("No authorization code to complete")
        email, username = self._request_identity()
        self.watcher.stop()
        result = await self.coordinator.complete(
            snapshot.oauth_code, email, username, auth_key, snapshot.group_name
        )
        if not result.outcome.stops_watching:
            self._sync_watcher()
        return result

    # External watchers

    def claim_external_watcher(self, oauth_code: str) -> None:
        """Hand polling of a code to a UI-owned watcher."""
        self._external_codes.add(oauth_code)
        self._sync_watcher()

    def release_external_watcher(self, oauth_code: str) -> None:
        self._external_codes.discard(oauth_code)
        self._sync_watcher()

    def is_externally_handled(self, oauth_code: str) -> bool:
        return oauth_code in self._external_codes

    # Component callbacks

    async def _on_snapshot(self, snapshot: InvitationRequestSnapshot) -> None:
        if self._closed:
            return
        result = self.reconciler.apply(snapshot)
        if result.stale:
            return
        if snapshot.status.is_terminal:
            self.poller.stop()
            self.watcher.stop()
            if result.completed:
                logfire.info("Invitation request completed", code=str(self.code))
        else:
            self._sync_watcher()
        self._publish()

    async def _on_not_found(self) -> None:
        if self._closed:
            return
        logfire.info("Tracked request no longer exists, resetting", code=str(self.code))
        self.watcher.stop()
        self.reconciler.reset()
        await self.repository.clear(self.code)
        self._identity = PersistedIdentity()
        self._publish()

    async def _on_disabled(self) -> None:
        if self._closed:
            return
        self.watcher.stop()
        self._availability = InvitationAvailability.DISABLED
        self._publish()

    def _on_completion(self, oauth_code: str, result: CompletionResult) -> None:
        if result.outcome == CompletionOutcome.EMAIL_MISMATCH:
            self._identity = self._identity.model_copy(
                update={"submitted": True, "email_mismatch_error": True}
            )
            self.poller.stop()
            self.watcher.stop()
        self._publish()

    # Helpers

    def _start_polling(self) -> None:
        identity = self._identity
        if (
            self._closed
            or not identity.submitted
            or not identity.has_identity
            or identity.email_mismatch_error
            or self._availability == InvitationAvailability.NOT_FOUND
        ):
            return
        self.poller.start(identity.email, identity.username)

    def _sync_watcher(self) -> None:
        if self._closed:
            return
        self.watcher.sync(self.reconciler.snapshot, self._identity, self.reconciler.generation)

    def _request_identity(self) -> tuple[str, str]:
        snapshot = self.reconciler.snapshot
        email = self._identity.email or (snapshot.email if snapshot else None) or ""
        username = self._identity.username or (snapshot.username if snapshot else None) or ""
        if not email or not username:
            raise ValidationError("Email and username are required. Please submit a request first.")
        return email, username

    def _publish(self) -> None:
        page = self.page
        if page == self._last_page:
            return
        self._last_page = page
        for listener in list(self._listeners):
            listener(page)
