"""Application layer DI providers."""

from dishka import Scope, provide

from enroll.adapter.invitation.client import InvitationClient
from enroll.adapter.notification.sink import NotificationSink
from enroll.application.flow import InvitationRequestFlow
from enroll.application.usecase.invite import (
    CheckInvitationUseCase,
    GenerateOAuthLinkUseCase,
    StartNewRequestUseCase,
    SubmitRequestUseCase,
)
from enroll.config import StorageSettings
from enroll.domain.repository import IdentityRepository
from enroll.domain.service import (
    CompletionCoordinator,
    OAuthWatcher,
    StateReconciler,
    StatusPoller,
)
from enroll.domain.value import InviteCode
from enroll.util.di.base import ProviderBase


class ProdApplicationProvider(ProviderBase):
    """Production application provider - use cases and the request flow."""

    scope = Scope.REQUEST

    @provide
    def get_check_invitation_usecase(
        self, gateway: InvitationClient
    ) -> CheckInvitationUseCase:
        """Provide check invitation use case."""
        return CheckInvitationUseCase(gateway=gateway)

    @provide
    def get_submit_request_usecase(
        self,
        gateway: InvitationClient,
        repository: IdentityRepository,
        notifier: NotificationSink,
    ) -> SubmitRequestUseCase:
        """Provide submit request use case."""
        return SubmitRequestUseCase(
            gateway=gateway, repository=repository, notifier=notifier
        )

    @provide
    def get_generate_oauth_link_usecase(
        self, gateway: InvitationClient, notifier: NotificationSink
    ) -> GenerateOAuthLinkUseCase:
        """Provide generate OAuth link use case."""
        return GenerateOAuthLinkUseCase(gateway=gateway, notifier=notifier)

    @provide
    def get_start_new_request_usecase(
        self,
        repository: IdentityRepository,
        check_invitation: CheckInvitationUseCase,
    ) -> StartNewRequestUseCase:
        """Provide start new request use case."""
        return StartNewRequestUseCase(
            repository=repository, check_invitation=check_invitation
        )

    @provide
    def get_invitation_request_flow(
        self,
        code: InviteCode,
        storage: StorageSettings,
        repository: IdentityRepository,
        reconciler: StateReconciler,
        poller: StatusPoller,
        watcher: OAuthWatcher,
        coordinator: CompletionCoordinator,
        check_invitation: CheckInvitationUseCase,
        submit_request: SubmitRequestUseCase,
        generate_oauth_link: GenerateOAuthLinkUseCase,
        start_new_request: StartNewRequestUseCase,
    ) -> InvitationRequestFlow:
        """Provide the request flow for the scope's invitation code."""
        return InvitationRequestFlow(
            code=code,
            repository=repository,
            reconciler=reconciler,
            poller=poller,
            watcher=watcher,
            coordinator=coordinator,
            check_invitation=check_invitation,
            submit_request=submit_request,
            generate_oauth_link=generate_oauth_link,
            start_new_request=start_new_request,
            restore_submitted=storage.restore_submitted,
        )
