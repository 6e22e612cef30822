"""
Configuration module with strict validation.

Key principles:
- APP STARTUP does NOT require MAPBOX_ACCESS_TOKEN
- Serving the map configuration DOES require the token (fails with clear error)
- Rate limits, retry behaviour and URLs are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MissingMapboxTokenError(Exception):
    """Raised when the map configuration is requested without a Mapbox token."""
    pass


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="PostgreSQL connection URL"
    )

    # Map configuration (OPTIONAL for startup, REQUIRED for the map view)
    mapbox_access_token: Optional[str] = Field(
        default=None,
        description="Public Mapbox token (pk.*) handed to the directory map"
    )

    # Public URLs
    site_base_url: str = Field(
        default="https://www.indiebookshop.com",
        description="Canonical site origin used in meta tags and the sitemap"
    )

    api_base_url: str = Field(
        default="http://localhost:8000/api/v1",
        description="Base URL the directory client uses to reach the read API"
    )

    html_shell_path: Optional[str] = Field(
        default=None,
        description="Path to the HTML shell served for /bookshop/{slug} (packaged shell if unset)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retries for failed API requests"
    )

    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    http_timeout: float = Field(
        default=15.0,
        gt=0,
        le=120.0,
        description="Request timeout in seconds for the directory client"
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable per-client rate limiting on /api routes"
    )

    rate_limit_window_seconds: int = Field(
        default=15 * 60,
        ge=1,
        description="Length of a rate limit window in seconds"
    )

    rate_limit_max_requests: int = Field(
        default=100,
        ge=1,
        description="Maximum requests per window for general API routes"
    )

    rate_limit_sweep_interval_seconds: int = Field(
        default=5 * 60,
        ge=1,
        description="How often expired rate limit windows are evicted"
    )

    # Directory map
    directory_move_debounce_seconds: float = Field(
        default=0.15,
        ge=0.0,
        le=5.0,
        description="Delay before re-clustering after the last map move event"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("site_base_url", "api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def require_mapbox_token(self) -> str:
        """
        Get the Mapbox token, raising clear error if missing.

        Raises:
            MissingMapboxTokenError: If the token is not configured

        Returns:
            str: The access token
        """
        if not self.mapbox_access_token:
            raise MissingMapboxTokenError(
                "MAPBOX_ACCESS_TOKEN is required to render the directory map. "
                "Please set it in your .env file or environment variables. "
                "Use a public token (pk.*) restricted to your domain."
            )
        return self.mapbox_access_token


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
