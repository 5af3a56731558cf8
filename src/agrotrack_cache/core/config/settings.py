#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
AgroTrack cache service. All configuration is centralized here so the
store, the middleware and the operator routes read the same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms (Settings(DISABLE_REDIS=True))

Author: System Architect
Date: 2025-12-05
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the distributed cache tier.

    STAGE-0.1: Redis connection configuration

    DISABLE_REDIS forces local-map-only mode: the store never opens a
    connection and every operation is served by the in-process fallback.
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")

    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Command timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=10, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Pool health check interval in seconds")

    REDIS_CONNECT_RETRIES: int = Field(default=3, description="Connection attempts at startup")
    REDIS_RECONNECT_INTERVAL: int = Field(
        default=30, description="Seconds between reconnect attempts while Redis is unreachable"
    )
    DISABLE_REDIS: bool = Field(default=False, description="Run with the local cache only")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache behaviour configuration.

    STAGE-2: Cache TTL and key-space configuration
    """

    CACHE_DEFAULT_TTL: int = Field(default=3600, description="Default entry TTL (1 hour)")
    CACHE_KEY_PREFIX: str = Field(default="agrotrack:", description="Namespace prefix applied in Redis")
    CACHE_ROUTE_PREFIX: str = Field(default="route:", description="Key prefix for cached routes")
    CACHE_ROUTE_TTL: int = Field(default=300, description="Default TTL for cached routes (5 minutes)")
    CACHE_TAG_PREFIX: str = Field(default="tag:", description="Key prefix for tag sets")
    CACHE_SCAN_COUNT: int = Field(default=100, description="SCAN batch size for pattern listing")
    CACHE_WARMUP_ON_STARTUP: bool = Field(default=True, description="Run registered warm-up tasks at startup")

    @field_validator("CACHE_DEFAULT_TTL", "CACHE_ROUTE_TTL")
    @classmethod
    def validate_ttl(cls, v):
        """TTLs must be positive."""
        if v <= 0:
            raise ValueError("TTL values must be positive")
        return v

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="AgroTrack Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for all API routers")

    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from agrotrack_cache.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_DEFAULT_TTL
        disabled = settings.redis.DISABLE_REDIS
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Command timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=10, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Pool health check interval in seconds")
    REDIS_CONNECT_RETRIES: int = Field(default=3, description="Connection attempts at startup")
    REDIS_RECONNECT_INTERVAL: int = Field(
        default=30, description="Seconds between reconnect attempts while Redis is unreachable"
    )
    DISABLE_REDIS: bool = Field(default=False, description="Run with the local cache only")

    # Cache settings
    CACHE_DEFAULT_TTL: int = Field(default=3600, description="Default entry TTL (1 hour)")
    CACHE_KEY_PREFIX: str = Field(default="agrotrack:", description="Namespace prefix applied in Redis")
    CACHE_ROUTE_PREFIX: str = Field(default="route:", description="Key prefix for cached routes")
    CACHE_ROUTE_TTL: int = Field(default=300, description="Default TTL for cached routes (5 minutes)")
    CACHE_TAG_PREFIX: str = Field(default="tag:", description="Key prefix for tag sets")
    CACHE_SCAN_COUNT: int = Field(default=100, description="SCAN batch size for pattern listing")
    CACHE_WARMUP_ON_STARTUP: bool = Field(default=True, description="Run registered warm-up tasks at startup")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="AgroTrack Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for all API routers")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_CONNECT_RETRIES=self.REDIS_CONNECT_RETRIES,
            REDIS_RECONNECT_INTERVAL=self.REDIS_RECONNECT_INTERVAL,
            DISABLE_REDIS=self.DISABLE_REDIS,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_ROUTE_PREFIX=self.CACHE_ROUTE_PREFIX,
            CACHE_ROUTE_TTL=self.CACHE_ROUTE_TTL,
            CACHE_TAG_PREFIX=self.CACHE_TAG_PREFIX,
            CACHE_SCAN_COUNT=self.CACHE_SCAN_COUNT,
            CACHE_WARMUP_ON_STARTUP=self.CACHE_WARMUP_ON_STARTUP,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
