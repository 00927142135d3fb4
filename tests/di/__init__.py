"""Mock providers for testing."""

from .config import MockConfigProvider
from .invitation import MockInvitationApiProvider
from .notification import MockNotificationProvider
from .persistence import MockPersistenceProvider
from .stremio import MockStremioProvider
from .container import build_test_container

__all__ = [
    "MockConfigProvider",
    "MockInvitationApiProvider",
    "MockNotificationProvider",
    "MockPersistenceProvider",
    "MockStremioProvider",
    "build_test_container",
]
