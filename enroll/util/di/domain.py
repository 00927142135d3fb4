"""Domain layer DI providers."""

from dishka import Scope, from_context, provide

from enroll.adapter.invitation.client import InvitationClient
from enroll.adapter.notification.sink import NotificationSink
from enroll.adapter.stremio.client import StremioLinkClient
from enroll.config import CompletionSettings, PollingSettings
from enroll.domain.repository import IdentityRepository
from enroll.domain.service import (
    CompletionCoordinator,
    OAuthWatcher,
    StateReconciler,
    StatusPoller,
)
from enroll.domain.value import InviteCode
from enroll.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Production domain services provider - concrete, no mocks needed.

    Domain services are REQUEST-scoped: one request scope is one invitation
    page session, entered with the invitation code as context.
    """

    scope = Scope.REQUEST

    invite_code = from_context(provides=InviteCode, scope=Scope.REQUEST)

    @provide
    def get_state_reconciler(self) -> StateReconciler:
        """Provide state reconciler."""
        return StateReconciler()

    @provide
    def get_status_poller(
        self,
        gateway: InvitationClient,
        code: InviteCode,
        polling: PollingSettings,
    ) -> StatusPoller:
        """Provide status poller."""
        return StatusPoller(
            gateway=gateway,
            code=code,
            pending_interval=polling.pending_interval,
            accepted_interval=polling.accepted_interval,
        )

    @provide
    def get_completion_coordinator(
        self,
        code: InviteCode,
        gateway: InvitationClient,
        poller: StatusPoller,
        repository: IdentityRepository,
        notifier: NotificationSink,
        polling: PollingSettings,
        completion: CompletionSettings,
    ) -> CompletionCoordinator:
        """Provide completion coordinator."""
        return CompletionCoordinator(
            code=code,
            gateway=gateway,
            poller=poller,
            repository=repository,
            notifier=notifier,
            max_failures=completion.max_verification_failures,
            confirm_interval=polling.confirm_interval,
            confirm_attempts=polling.confirm_attempts,
        )

    @provide
    def get_oauth_watcher(
        self,
        provider: StremioLinkClient,
        coordinator: CompletionCoordinator,
        polling: PollingSettings,
    ) -> OAuthWatcher:
        """Provide OAuth watcher."""
        return OAuthWatcher(
            provider=provider,
            coordinator=coordinator,
            interval=polling.oauth_interval,
        )
