"""Base classes for dependency injection providers."""

from typing import ClassVar, Literal, get_args

from dishka import Provider

# Components with a production and a mock implementation
Component = Literal["config", "invitation_api", "stremio", "persistence", "notification"]
COMPONENTS: frozenset[str] = frozenset(get_args(Component))


class ProviderBase(Provider):
    """Base for all engine providers.

    A mockable component is declared as a base class carrying
    `__mock_component__`, with one production and one mock subclass that
    differ only in `__is_mock__`. Concrete providers have no subclasses.

    Attributes:
        __mock_component__: Component name, None for concrete providers
        __is_mock__: Whether this is a mock implementation
    """

    __mock_component__: ClassVar[Component | None] = None
    __is_mock__: ClassVar[bool] = False

    @classmethod
    def is_mockable(cls) -> bool:
        return cls.__mock_component__ is not None and bool(cls.__subclasses__())
