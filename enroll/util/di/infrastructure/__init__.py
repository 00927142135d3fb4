"""Infrastructure providers."""

# Import bases
from .invitation import InvitationApiProvider
from .notification import NotificationProvider
from .persistence import PersistenceProvider
from .stremio import StremioProvider

# Import implementations (needed for __subclasses__())
from .invitation import ProdInvitationApiProvider  # noqa: F401
from .notification import ProdNotificationProvider  # noqa: F401
from .persistence import ProdPersistenceProvider  # noqa: F401
from .stremio import ProdStremioProvider  # noqa: F401

__all__ = [
    "InvitationApiProvider",
    "NotificationProvider",
    "PersistenceProvider",
    "ProdInvitationApiProvider",
    "ProdNotificationProvider",
    "ProdPersistenceProvider",
    "ProdStremioProvider",
    "StremioProvider",
]
