"""In-memory identity repository for testing."""

from enroll.domain.repository.identity import IdentityRepository


class InMemoryIdentityRepository(IdentityRepository):
    """In-memory implementation of IdentityRepository for testing."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    async def _read(self, key: str) -> str | None:
        return self._records.get(key)

    async def _write(self, key: str, value: str) -> None:
        self._records[key] = value

    async def _delete(self, key: str) -> None:
        self._records.pop(key, None)

    def put_raw(self, key: str, value: str) -> None:
        """Store a raw value, bypassing validation (simulates another writer)."""
        self._records[key] = value

    def get_raw(self, key: str) -> str | None:
        return self._records.get(key)
