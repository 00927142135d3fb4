"""Application configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PollingSettings(BaseModel):
    """Polling cadence configuration (seconds)."""

    # Status record polling, by last observed status
    pending_interval: float = 2.0
    accepted_interval: float = 5.0

    # Third-party authorization polling
    oauth_interval: float = 5.0

    # Bounded refetch loop after a completion call succeeds
    # Masks read-replica / cache lag on the backend
    confirm_interval: float = 0.5
    confirm_attempts: int = 10


class CompletionSettings(BaseModel):
    """Account completion configuration."""

    # Auth-key verification failures tolerated per authorization code
    max_verification_failures: int = 3


class InvitationApiSettings(BaseModel):
    """Internal invitation API configuration."""

    base_url: str = "http://localhost:4000"
    timeout: float = 10.0


class StremioSettings(BaseModel):
    """Stremio link (third-party authorization) configuration."""

    base_url: str = "https://link.stremio.com"
    timeout: float = 10.0

    # Identifies the requesting origin to the provider
    # Stremio only answers requests carrying a recognised host
    host: str = "syncio.app"
    protocol: Literal["http", "https"] = "https"

    @computed_field
    @property
    def origin(self) -> str:
        """Origin header value sent with every provider request."""
        return f"{self.protocol}://{self.host}"


class StorageSettings(BaseModel):
    """Persisted identity storage configuration."""

    # JSON file holding one record per invitation code
    path: Path = Path(".enroll/identities.json")

    # Restore `submitted` on start when the stored record carries
    # both email and username (reload / second-tab continuity)
    restore_submitted: bool = True


class ObservabilitySettings(BaseModel):
    """Observability configuration for Logfire."""

    # Logfire API token (optional - if not set, logs only go to console)
    # Can be set via OBSERVABILITY__LOGFIRE_TOKEN env var
    logfire_token: str | None = None

    # Whether to send telemetry to Logfire cloud
    # If None, will auto-determine: sends if token is present, otherwise console-only
    send_to_logfire: bool | None = None


class Settings(BaseSettings):
    """Application settings.

    Set environment variables to override, using `__` for nested values:

        INVITATION_API__BASE_URL=https://syncio.example.com/api
        POLLING__ACCEPTED_INTERVAL=5
        STORAGE__PATH=/var/lib/enroll/identities.json
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # Allows POLLING__PENDING_INTERVAL syntax
    )

    environment: Literal["test", "development", "staging", "production"] = "development"
    debug: bool = False

    # Nested settings
    polling: PollingSettings = PollingSettings()
    completion: CompletionSettings = CompletionSettings()
    invitation_api: InvitationApiSettings = InvitationApiSettings()
    stremio: StremioSettings = StremioSettings()
    storage: StorageSettings = StorageSettings()
    observability: ObservabilitySettings = ObservabilitySettings()
