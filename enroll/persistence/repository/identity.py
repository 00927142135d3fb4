"""File-backed identity repository."""

import json
import os
import tempfile
from pathlib import Path

import logfire

from enroll.domain.repository.identity import IdentityRepository


class FileIdentityRepository(IdentityRepository):
    """Stores identity records in a single JSON document.

    The document maps storage keys to JSON-encoded records, the same layout a
    browser keeps in localStorage, so several processes watching the same
    invitation share what was submitted. Writes replace the file atomically.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def _read(self, key: str) -> str | None:
        value = self._read_document().get(key)
        return value if isinstance(value, str) else None

    async def _write(self, key: str, value: str) -> None:
        document = self._read_document()
        document[key] = value
        self._write_document(document)

    async def _delete(self, key: str) -> None:
        document = self._read_document()
        if document.pop(key, None) is not None:
            self._write_document(document)

    def _read_document(self) -> dict[str, object]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            document = json.loads(text)
        except ValueError:
            logfire.warn("Identity store is not valid JSON, starting empty", path=str(self._path))
            return {}
        return document if isinstance(document, dict) else {}

    def _write_document(self, document: dict[str, object]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise
