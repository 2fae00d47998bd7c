"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    These cover how the service talks to the outside world. The user's own
    choices (units, locations, providers) live in the preferences store.

    Example:
        >>> settings = Settings()
        >>> settings.REFRESH_INTERVAL
        900
        >>> settings.RESOLVER_RETRY_LIMIT
        10
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Upstream API Configuration
    UPSTREAM_TIMEOUT: float = Field(
        default=15.0,
        description="Timeout for every outgoing HTTP request in seconds",
        ge=0.1,
        le=60.0,
    )
    OPENMETEO_BASE_URL: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        description="Forecast endpoint of the Open-Meteo API",
    )
    IPINFO_URL: str = Field(
        default="https://ipinfo.io/json",
        description="IP geolocation endpoint returning loc/city/country",
    )
    IPAPI_URL: str = Field(
        default="https://ipapi.co/json/",
        description="Alternate IP geolocation endpoint returning latitude/longitude",
    )
    NOMINATIM_BASE_URL: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL for Nominatim search and reverse geocoding",
    )
    TIMEZONE: str | None = Field(
        default=None,
        description="IANA timezone sent to the forecast API (detected when unset)",
    )

    # Refresh and Retry Configuration
    REFRESH_INTERVAL: int = Field(
        default=15 * 60,
        description="Seconds between periodic weather refreshes",
        ge=60,
        le=24 * 60 * 60,
    )
    RESOLVER_RETRY_DELAY: float = Field(
        default=7.5,
        description="Seconds to wait before retrying a fetch that failed on DNS resolution",
        ge=0.0,
        le=600.0,
    )
    RESOLVER_RETRY_LIMIT: int = Field(
        default=10,
        description="Consecutive DNS failures after which retries stop until the next tick",
        ge=0,
        le=100,
    )

    # Request Coalescing
    REQUEST_COALESCE_LIMIT: int = Field(
        default=100,
        description="Max concurrent waiters on one in-flight request",
        ge=1,
        le=10000,
    )

    # Preferences
    PREFERENCES_FILE: Path | None = Field(
        default=None,
        description="JSON file the user preferences are loaded from and saved to",
    )

    # Server Configuration
    PORT: int = Field(
        default=8000,
        description="Server port",
        ge=1,
        le=65535,
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Environment Configuration
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment (development, staging, production)",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that LOG_LEVEL is a valid logging level.

        Example:
            >>> Settings(LOG_LEVEL="info").LOG_LEVEL
            'INFO'
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got {v}")
        return v_upper

    @field_validator("OPENMETEO_BASE_URL", "NOMINATIM_BASE_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that a base URL is properly formatted.

        Example:
            >>> Settings(OPENMETEO_BASE_URL="https://api.example.com/").OPENMETEO_BASE_URL
            'https://api.example.com'
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL settings must start with http:// or https://")
        # Remove trailing slash for consistency
        return v.rstrip("/")

    @field_validator("IPINFO_URL", "IPAPI_URL")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate an endpoint URL, kept exactly as given.

        Example:
            >>> Settings().IPAPI_URL
            'https://ipapi.co/json/'
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL settings must start with http:// or https://")
        return v


# Global settings instance
settings = Settings()
