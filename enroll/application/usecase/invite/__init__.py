"""Invitation page use cases."""

from enroll.application.usecase.invite.check_invitation import (
    CheckInvitationRequest,
    CheckInvitationResponse,
    CheckInvitationUseCase,
)
from enroll.application.usecase.invite.generate_oauth import (
    GenerateOAuthLinkRequest,
    GenerateOAuthLinkResponse,
    GenerateOAuthLinkUseCase,
)
from enroll.application.usecase.invite.start_new_request import (
    StartNewRequestRequest,
    StartNewRequestResponse,
    StartNewRequestUseCase,
)
from enroll.application.usecase.invite.submit_request import (
    SubmitOutcome,
    SubmitRequestRequest,
    SubmitRequestResponse,
    SubmitRequestUseCase,
)

__all__ = [
    "CheckInvitationRequest",
    "CheckInvitationResponse",
    "CheckInvitationUseCase",
    "GenerateOAuthLinkRequest",
    "GenerateOAuthLinkResponse",
    "GenerateOAuthLinkUseCase",
    "StartNewRequestRequest",
    "StartNewRequestResponse",
    "StartNewRequestUseCase",
    "SubmitOutcome",
    "SubmitRequestRequest",
    "SubmitRequestResponse",
    "SubmitRequestUseCase",
]
