"""
Tests for cache configuration settings.
"""

import pytest
from pydantic import ValidationError

from src.shared.config import (
    CacheSettings,
    Environment,
    Settings,
    StorageBackendType,
)


class TestCacheSettings:
    """Defaults, environment overrides and validation."""

    def test_defaults(self):
        settings = CacheSettings()

        assert settings.prefix == "sports_app_"
        assert settings.default_ttl == 300
        assert settings.user_ttl == 900
        assert settings.clubs_ttl == 600
        assert settings.chat_ttl == 1800
        assert settings.monitor_capacity == 100
        assert settings.storage_backend == StorageBackendType.MEMORY
        assert settings.clubs_response_key is None
        assert settings.sweep_interval is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FANZONE_CACHE_PREFIX", "fz_")
        monkeypatch.setenv("FANZONE_CACHE_CLUBS_TTL", "120")
        monkeypatch.setenv("FANZONE_CACHE_STORAGE_BACKEND", "redis")
        monkeypatch.setenv("FANZONE_CACHE_CLUBS_RESPONSE_KEY", "userClubs")

        settings = CacheSettings()

        assert settings.prefix == "fz_"
        assert settings.clubs_ttl == 120
        assert settings.storage_backend == StorageBackendType.REDIS
        assert settings.clubs_response_key == "userClubs"

    @pytest.mark.parametrize("field,value", [
        ("user_ttl", 0),
        ("default_ttl", -5),
        ("monitor_capacity", 0),
        ("monitor_window", 0),
        ("sweep_interval", 0),
        ("prefix", ""),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            CacheSettings(**{field: value})


class TestSettings:
    """Top-level settings."""

    def test_component_settings_nested(self):
        settings = Settings()

        assert isinstance(settings.cache, CacheSettings)
        assert settings.api.api_base_url == "http://localhost:5000/api"
        assert settings.environment == Environment.DEVELOPMENT

    def test_debug_rejected_in_production(self):
        with pytest.raises(ValidationError):
            Settings(environment=Environment.PRODUCTION, debug=True)
