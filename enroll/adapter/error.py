"""Adapter layer errors."""


class AdapterError(Exception):
    """Base adapter error."""

    pass


class ProviderError(AdapterError):
    """Third-party provider error."""

    pass


class AuthorizationProviderError(ProviderError):
    """The authorization endpoint returned nothing usable.

    Raised for transport failures, non-200 responses and malformed bodies.
    """

    pass
