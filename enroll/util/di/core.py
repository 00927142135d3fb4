"""Configuration DI providers."""

from dishka import Scope, provide

from enroll.config import (
    CompletionSettings,
    PollingSettings,
    Settings,
    StorageSettings,
)
from enroll.util.di.base import ProviderBase


class ConfigProvider(ProviderBase):
    """Config component base.

    Mockable so tests can run the engine with millisecond intervals.
    Sections are exposed as their own types for narrow injection.
    """

    __mock_component__ = "config"

    @provide(scope=Scope.APP)
    def provide_polling_settings(self, settings: Settings) -> PollingSettings:
        return settings.polling

    @provide(scope=Scope.APP)
    def provide_completion_settings(self, settings: Settings) -> CompletionSettings:
        return settings.completion

    @provide(scope=Scope.APP)
    def provide_storage_settings(self, settings: Settings) -> StorageSettings:
        return settings.storage


class ProdConfigProvider(ConfigProvider):
    """Production config provider.

    Settings are loaded from environment variables and .env file automatically.
    """

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        """Provide application settings from environment."""
        return Settings()
