"""
Application settings using Pydantic BaseSettings.

Every value can be set through a ``CANVASSLOG_`` environment variable or a
``.env`` file. Missing service credentials never fail at load time; callers
check ``store_configured`` / ``maps_configured`` instead.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings."""

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")

    # Record store (PostgREST) configuration
    store_url: str | None = Field(default=None, description="Record store project URL")
    store_api_key: str | None = Field(default=None, description="Record store anon key")
    store_access_token: str | None = Field(
        default=None, description="Signed-in user's access token for row-level policies"
    )
    canvasser_id: str | None = Field(
        default=None, description="User id recorded as canvasser and note author"
    )

    # Mapping service configuration
    maps_api_key: str | None = Field(default=None, description="Google Maps API key")
    maps_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api",
        description="Maps web services base URL",
    )
    geolocation_url: str = Field(
        default="https://www.googleapis.com/geolocation/v1/geolocate",
        description="Device geolocation endpoint",
    )
    geolocation_timeout: float = Field(
        default=10.0, description="Geolocation lookup timeout in seconds"
    )
    default_state: str = Field(
        default="TX", description="State appended to addresses for geocoding"
    )
    default_map_lat: float = Field(default=29.7604, description="Map center latitude")
    default_map_lng: float = Field(default=-95.3698, description="Map center longitude")

    # HTTP client configuration
    http_timeout: int = Field(default=30, description="HTTP request timeout in seconds")

    # Application configuration
    duplicate_check_delay_ms: int = Field(
        default=500, description="Debounce delay for the duplicate address check"
    )
    export_dir: Path = Field(default=Path("."), description="Directory for exports")

    model_config = {
        "env_prefix": "CANVASSLOG_",
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("store_url", "maps_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @property
    def store_configured(self) -> bool:
        return bool(self.store_url and self.store_api_key)

    @property
    def maps_configured(self) -> bool:
        return bool(self.maps_api_key)

    def missing_configuration(self) -> list[str]:
        """Environment variables that still need a value."""
        missing = []
        if not self.store_url:
            missing.append("CANVASSLOG_STORE_URL")
        if not self.store_api_key:
            missing.append("CANVASSLOG_STORE_API_KEY")
        if not self.maps_api_key:
            missing.append("CANVASSLOG_MAPS_API_KEY")
        return missing


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
