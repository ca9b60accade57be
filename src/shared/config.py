"""
Shared Configuration - Application Settings and Environment Management
Centralized configuration management for the Fanzone client cache.

This module provides:
- Environment-based configuration
- Type-safe settings with validation
- Cache TTLs, namespace and storage backend selection
- API client configuration
- Logging configuration
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from enum import Enum


class Environment(str, Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackendType(str, Enum):
    """Backing media the TTL store can persist to."""
    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class CacheSettings(BaseSettings):
    """Client cache configuration settings."""

    # Namespace
    prefix: str = Field("sports_app_", description="Key prefix isolating cache entries")
    schema_version: int = Field(1, description="Entry format version; other versions read as misses")

    # TTLs (seconds)
    default_ttl: int = Field(5 * 60)
    user_ttl: int = Field(15 * 60)
    clubs_ttl: int = Field(10 * 60)
    chat_ttl: int = Field(30 * 60)

    # Storage backend
    storage_backend: StorageBackendType = Field(StorageBackendType.MEMORY)
    storage_path: str = Field(".cache/fanzone_storage.json")
    redis_url: str = Field("redis://localhost:6379/0")

    # Monitor
    monitor_enabled: bool = Field(True)
    monitor_capacity: int = Field(100)
    monitor_window: int = Field(60, description="Stats window in seconds")

    # Resource routes
    user_path: str = Field("/auth/me")
    clubs_path: str = Field("/api/clubs")
    chat_path_pattern: str = Field(r"^/api/clubs/(?P<room_id>[^/]+)/messages$")
    clubs_response_key: Optional[str] = Field(
        None, description="Envelope key holding the club list in the list response"
    )

    # Query layer
    stale_time: int = Field(5 * 60)
    gc_time: int = Field(10 * 60)

    # Background work
    sweep_interval: Optional[int] = Field(None, description="Seconds between sweeps; None disables")
    warm_on_init: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix="FANZONE_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_ttl", "user_ttl", "clubs_ttl", "chat_ttl")
    @classmethod
    def validate_ttl(cls, v):
        if v <= 0:
            raise ValueError("TTL must be a positive number of seconds")
        return v

    @field_validator("monitor_capacity", "monitor_window")
    @classmethod
    def validate_monitor_bounds(cls, v):
        if v < 1:
            raise ValueError("Monitor capacity and window must be at least 1")
        return v

    @field_validator("sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Sweep interval must be positive when set")
        return v

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v):
        if not v:
            raise ValueError("Cache prefix must not be empty")
        return v


class ApiSettings(BaseSettings):
    """API client configuration settings."""

    api_base_url: str = Field("http://localhost:5000/api")
    request_timeout: float = Field(30.0)

    model_config = SettingsConfigDict(
        env_prefix="FANZONE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and logging configuration settings."""

    log_level: LogLevel = Field(LogLevel.INFO)
    log_format: str = Field("colored", description="json, colored or standard")
    log_file: Optional[str] = Field(None)

    model_config = SettingsConfigDict(
        env_prefix="FANZONE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(Environment.DEVELOPMENT)
    debug: bool = Field(True)
    app_name: str = Field("Fanzone")

    # Component settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    model_config = SettingsConfigDict(
        env_prefix="FANZONE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("debug")
    @classmethod
    def validate_debug_in_production(cls, v, info):
        if info.data.get("environment") == Environment.PRODUCTION and v:
            raise ValueError("Debug mode should not be enabled in production")
        return v


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings.
    This function can be used as a FastAPI dependency.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_cache_settings() -> CacheSettings:
    """Get cache settings."""
    return get_settings().cache


def get_api_settings() -> ApiSettings:
    """Get API settings."""
    return get_settings().api


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return get_settings().monitoring
