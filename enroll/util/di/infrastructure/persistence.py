"""Persistence infrastructure providers."""

from dishka import Scope, provide
import logfire

from enroll.config import StorageSettings
from enroll.domain.repository import IdentityRepository
from enroll.persistence.repository import FileIdentityRepository
from enroll.util.di.base import ProviderBase


class PersistenceProvider(ProviderBase):
    """Persistence component base."""

    __mock_component__ = "persistence"


class ProdPersistenceProvider(PersistenceProvider):
    """Production persistence provider using a JSON file."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_identity_repository(self, storage: StorageSettings) -> IdentityRepository:
        """Provide identity repository."""
        logfire.info("Identity store opened", path=str(storage.path))
        return FileIdentityRepository(storage.path)
