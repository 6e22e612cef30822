"""
Unit tests for configuration module.

Tests run WITHOUT .env file and WITHOUT a Mapbox token.
"""
import pytest

from indiebookshop.core.config import (
    MissingMapboxTokenError,
    Settings,
    get_settings,
    reset_settings,
)


@pytest.mark.unit
def test_config_requires_database_url(clean_env):
    """Database URL is required for app startup."""
    with pytest.raises(Exception):  # Pydantic validation error
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_mapbox_token_optional_for_startup(clean_env, monkeypatch):
    """The map token is optional for app startup."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    settings = Settings(_env_file=None)
    assert settings.database_url == "postgresql://test"
    assert settings.mapbox_access_token is None


@pytest.mark.unit
def test_config_mapbox_token_required_for_map(clean_env, monkeypatch):
    """require_mapbox_token() fails with a clear message when unset."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    settings = Settings(_env_file=None)

    with pytest.raises(MissingMapboxTokenError) as exc_info:
        settings.require_mapbox_token()

    assert "MAPBOX_ACCESS_TOKEN is required" in str(exc_info.value)
    assert "pk." in str(exc_info.value)


@pytest.mark.unit
def test_config_mapbox_token_present(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("MAPBOX_ACCESS_TOKEN", "pk.test")

    settings = Settings(_env_file=None)
    assert settings.require_mapbox_token() == "pk.test"


@pytest.mark.unit
def test_config_defaults(clean_env, monkeypatch):
    """Optional settings have safe defaults."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    settings = Settings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.max_retries == 3
    assert settings.rate_limit_enabled is True
    assert settings.rate_limit_window_seconds == 900
    assert settings.rate_limit_max_requests == 100
    assert settings.rate_limit_sweep_interval_seconds == 300
    assert settings.directory_move_debounce_seconds == 0.15
    assert settings.html_shell_path is None


@pytest.mark.unit
def test_config_log_level_validation(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert Settings(_env_file=None).log_level == "DEBUG"

    monkeypatch.setenv("LOG_LEVEL", "LOUD")
    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_urls_lose_trailing_slash(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("SITE_BASE_URL", "https://books.example/")
    monkeypatch.setenv("API_BASE_URL", "http://api.example/api/v1/")

    settings = Settings(_env_file=None)
    assert settings.site_base_url == "https://books.example"
    assert settings.api_base_url == "http://api.example/api/v1"


@pytest.mark.unit
def test_config_rejects_out_of_range_values(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("MAX_RETRIES", "50")
    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_get_settings_is_cached(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://first")
    first = get_settings()
    monkeypatch.setenv("DATABASE_URL", "postgresql://second")
    assert get_settings() is first

    reset_settings()
    assert get_settings().database_url == "postgresql://second"
