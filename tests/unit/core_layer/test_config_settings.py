"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from agrotrack_cache.core.config import settings as settings_module
from agrotrack_cache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Default values of every configuration section."""

    def test_cache_settings_defaults(self):
        """Cache section carries the documented defaults."""
        settings = Settings()

        assert settings.cache.CACHE_DEFAULT_TTL == 3600
        assert settings.cache.CACHE_KEY_PREFIX == "agrotrack:"
        assert settings.cache.CACHE_ROUTE_PREFIX == "route:"
        assert settings.cache.CACHE_ROUTE_TTL == 300
        assert settings.cache.CACHE_TAG_PREFIX == "tag:"

    def test_redis_settings_defaults(self):
        """Redis is enabled by default with a bounded retry budget."""
        settings = Settings()

        assert settings.redis.DISABLE_REDIS is False
        assert settings.redis.REDIS_CONNECT_RETRIES > 0
        assert settings.redis.REDIS_RECONNECT_INTERVAL > 0

    def test_app_settings_defaults(self):
        """Operator routes mount under /api."""
        settings = Settings()

        assert settings.app.API_BASE_PATH == "/api"
        assert settings.app.APP_NAME


@pytest.mark.unit
class TestSettingsFromEnvironment:
    """Environment variables override defaults."""

    def test_disable_redis_from_env(self, monkeypatch):
        """DISABLE_REDIS=true switches the store to local-only mode."""
        monkeypatch.setenv("DISABLE_REDIS", "true")

        assert Settings().redis.DISABLE_REDIS is True

    def test_route_ttl_from_env(self, monkeypatch):
        """Integer settings are parsed from strings."""
        monkeypatch.setenv("CACHE_ROUTE_TTL", "42")

        assert Settings().cache.CACHE_ROUTE_TTL == 42

    def test_log_level_is_upper_cased(self):
        """LOG_LEVEL accepts any case."""
        assert Settings(LOG_LEVEL="debug").logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        """Unknown log levels fail validation."""
        with pytest.raises(PydanticValidationError):
            Settings(LOG_LEVEL="LOUD")


@pytest.mark.unit
class TestSettingsSingleton:
    """get_settings caches, reload_settings replaces."""

    def test_get_settings_returns_same_instance(self, monkeypatch):
        monkeypatch.setattr(settings_module, "_settings", None)

        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self, monkeypatch):
        monkeypatch.setattr(settings_module, "_settings", None)
        first = get_settings()

        reloaded = reload_settings()

        assert reloaded is not first
        assert get_settings() is reloaded
