"""Domain layer errors."""

from typing import Any


class DomainError(Exception):
    """Base domain error."""

    pass


class ValidationError(DomainError):
    """Domain validation error."""

    pass


class GatewayError(DomainError):
    """Raised when the invitation backend rejects a call.

    The backend reports failures as `{error, message?, status?}` where
    `error` is either a discriminator (EMAIL_MISMATCH, USERNAME_EXISTS, ...)
    or a human-readable message, so both are kept.

    Attributes:
        status_code: HTTP status code (None for transport failures)
        code: Value of the `error` field
        message: Human-readable message (`message` field, else `error`)
        payload: Full decoded error body
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        payload: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.payload = payload or {}
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    def mentions(self, *fragments: str) -> bool:
        """Check whether the error text contains any of the given fragments."""
        text = f"{self.code or ''} {self.message or ''}".lower()
        return any(fragment in text for fragment in fragments)


class GatewayUnavailableError(GatewayError):
    """Raised when the invitation backend cannot be reached."""

    def __init__(self, message: str):
        super().__init__(message, status_code=None)
