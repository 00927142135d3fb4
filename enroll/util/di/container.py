"""Dependency injection container."""

from dishka import AsyncContainer, make_async_container

from enroll.util.di import PROVIDERS, get_provider


def create_container() -> AsyncContainer:
    """Build production container (all prod implementations).

    Settings are loaded from environment variables automatically. Enter a
    request scope per invitation code:

        async with container(context={InviteCode: code}) as scope:
            flow = await scope.get(InvitationRequestFlow)

    Returns:
        Configured DI container with production providers
    """
    provider_instances = [get_provider(base, use_mock=False)() for base in PROVIDERS]
    return make_async_container(*provider_instances)
