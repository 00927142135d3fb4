"""Persisted identity entity."""

from pydantic import Field

from enroll.domain.model.common import DomainModel


class PersistedIdentity(DomainModel):
    """Identity the visitor submitted for one invitation code.

    Stored as JSON under `invite_request_<code>` so it survives reloads and is
    shared across tabs. `submitted` only becomes true through an explicit
    action in the current session (submit, or duplicate-request recovery);
    the repository decides when a stored flag may be restored.
    """

    email: str = ""
    username: str = ""
    submitted: bool = False
    email_mismatch_error: bool = Field(default=False, alias="emailMismatchError")

    @property
    def has_identity(self) -> bool:
        return bool(self.email.strip() and self.username.strip())
