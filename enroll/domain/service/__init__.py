"""Domain services."""

from .base import Service
from .coordinator import CompletionCoordinator
from .gateway import AuthorizationProvider, InvitationGateway
from .notification import Notifier
from .polling import next_poll_interval
from .reconciler import ReconcilerState, StateReconciler
from .status_poller import StatusPoller
from .watcher import OAuthWatcher

__all__ = [
    "AuthorizationProvider",
    "CompletionCoordinator",
    "InvitationGateway",
    "Notifier",
    "OAuthWatcher",
    "ReconcilerState",
    "Service",
    "StateReconciler",
    "StatusPoller",
    "next_poll_interval",
]
