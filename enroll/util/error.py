"""Utility layer errors."""


class UtilError(Exception):
    """Base utility error."""

    pass


class ConfigurationError(UtilError):
    """Settings are missing or unusable (e.g. an empty backend URL)."""

    pass


class DependencyInjectionError(UtilError):
    """A provider component has no implementation of the requested kind."""

    pass
