"""Persisted identity repository interface."""

import json
from abc import ABC, abstractmethod
from typing import Any

import logfire
from pydantic import ValidationError as PydanticValidationError

from enroll.domain.error import ValidationError
from enroll.domain.model.identity import PersistedIdentity
from enroll.domain.value import InviteCode

_FIELDS = frozenset(PersistedIdentity.model_fields)


class IdentityRepository(ABC):
    """Repository for PersistedIdentity records.

    Backends only move raw JSON strings under a key; the read gating and
    shallow-merge rules live here so every backend enforces them the same way.
    Implementations live in the persistence layer.
    """

    async def load(
        self, code: InviteCode, restore_submitted: bool = False
    ) -> PersistedIdentity:
        """Load the identity stored for an invitation code.

        The stored `submitted` flag is only restored when the caller opts in
        AND the record also carries a non-empty email and username.

        Args:
            code: Invitation code
            restore_submitted: Restore a stored `submitted=true`

        Returns:
            The identity (empty when nothing or garbage is stored)
        """
        stored = await self._load_stored(code)
        submitted = restore_submitted and stored.submitted and stored.has_identity
        if submitted == stored.submitted:
            return stored
        return stored.model_copy(update={"submitted": submitted})

    async def save(self, code: InviteCode, **changes: Any) -> PersistedIdentity:
        """Shallow-merge fields into the stored record.

        Fields not named in `changes` keep their stored value, so flags set
        by another code path (e.g. `email_mismatch_error`) survive.

        Args:
            code: Invitation code
            **changes: PersistedIdentity fields to update

        Returns:
            The merged record as stored (submitted flag not gated)

        Raises:
            ValidationError: If an unknown field or invalid value is given
        """
        unknown = set(changes) - _FIELDS
        if unknown:
            raise ValidationError(f"Unknown identity fields: {', '.join(sorted(unknown))}")

        stored = await self._load_stored(code)
        try:
            merged = PersistedIdentity.model_validate(
                {**stored.model_dump(), **changes}
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid identity for {code}: {e}") from e

        await self._write(code.storage_key, merged.model_dump_json(by_alias=True))
        return merged

    async def clear(self, code: InviteCode) -> None:
        """Forget everything stored for an invitation code."""
        await self._delete(code.storage_key)

    async def _load_stored(self, code: InviteCode) -> PersistedIdentity:
        raw = await self._read(code.storage_key)
        if not raw:
            return PersistedIdentity()
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("identity record is not an object")
            return PersistedIdentity.model_validate(data)
        except (ValueError, PydanticValidationError) as e:
            logfire.warn(
                "Ignoring malformed identity record",
                key=code.storage_key,
                error=str(e),
            )
            return PersistedIdentity()

    @abstractmethod
    async def _read(self, key: str) -> str | None:
        """Read the raw value stored under a key.

        Args:
            key: Storage key (`invite_request_<code>`)

        Returns:
            The stored string, or None if absent
        """
        pass

    @abstractmethod
    async def _write(self, key: str, value: str) -> None:
        """Store a raw value under a key."""
        pass

    @abstractmethod
    async def _delete(self, key: str) -> None:
        """Remove a key if present."""
        pass
