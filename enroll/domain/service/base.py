"""Base service class for domain services."""


class Service:
    """Base class for all domain services.

    Domain services hold the engine's long-lived state (reconciler cursor,
    polling sessions, timers) for one invitation code.
    """

    pass
