"""Dependency injection module."""

from typing import Type

from enroll.util.di.application import ProdApplicationProvider
from enroll.util.di.base import COMPONENTS, Component, ProviderBase
from enroll.util.di.core import ConfigProvider, ProdConfigProvider
from enroll.util.di.domain import ProdDomainProvider
from enroll.util.di.infrastructure import (
    InvitationApiProvider,
    NotificationProvider,
    PersistenceProvider,
    ProdInvitationApiProvider,
    ProdNotificationProvider,
    ProdPersistenceProvider,
    ProdStremioProvider,
    StremioProvider,
)
from enroll.util.error import DependencyInjectionError

# Installed in this order; mockable bases are swapped for an implementation
PROVIDERS: list[Type[ProviderBase]] = [
    # Mockable so tests can shrink intervals
    ConfigProvider,
    # Engine components for one invitation code
    ProdDomainProvider,
    ProdApplicationProvider,
    # Backends
    InvitationApiProvider,
    StremioProvider,
    PersistenceProvider,
    NotificationProvider,
]


def get_provider(base: Type[ProviderBase], use_mock: bool = False) -> Type[ProviderBase]:
    """Resolve the provider class to install for a component.

    Concrete providers are returned unchanged. For a mockable component base
    the subclass whose `__is_mock__` matches `use_mock` is returned; test
    modules register mock subclasses simply by being imported.

    Raises:
        DependencyInjectionError: If the requested implementation is not loaded
    """
    if not base.is_mockable():
        return base

    for impl in base.__subclasses__():
        if impl.__is_mock__ == use_mock:
            return impl

    kind = "mock" if use_mock else "production"
    raise DependencyInjectionError(
        f"No {kind} implementation of the {base.__mock_component__} component is loaded"
    )


__all__ = [
    "COMPONENTS",
    "Component",
    "ProviderBase",
    "PROVIDERS",
    "get_provider",
    # Core providers
    "ProdDomainProvider",
    "ProdApplicationProvider",
    # Mockable component bases
    "ConfigProvider",
    "InvitationApiProvider",
    "NotificationProvider",
    "PersistenceProvider",
    "StremioProvider",
    # Production implementations
    "ProdConfigProvider",
    "ProdInvitationApiProvider",
    "ProdNotificationProvider",
    "ProdPersistenceProvider",
    "ProdStremioProvider",
]
