"""
Configuration Management
========================

Pydantic-settings based configuration for storage, the API and claim rules.
Reads from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Configuration for the Redis claim/credit store."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost")
    port: int = Field(default=6379)
    socket_path: str | None = Field(default=None, description="Path to Unix socket")
    password: SecretStr | None = Field(default=None)
    db: int = Field(default=0, ge=0)
    max_connections: int = Field(default=10, ge=1)
    connect_retries: int = Field(default=10, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    key_prefix: str = Field(default="airclaim:", description="Namespace for all keys")


class StorageSettings(BaseSettings):
    """Which store backend to wire at startup."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="'memory' keeps everything in-process (development and tests)",
    )


class APISettings(BaseSettings):
    """Configuration for the FastAPI application."""

    model_config = SettingsConfigDict(env_prefix="API_")

    title: str = Field(default="AirClaim API")
    version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=1, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    # API key for public access (optional, leave empty to disable)
    api_key: str = Field(
        default="",
        description="API key for authentication. Leave empty to disable auth.",
    )


class ClaimSettings(BaseSettings):
    """Claim lifecycle rules."""

    model_config = SettingsConfigDict(env_prefix="CLAIMS_")

    claim_id_prefix: str = Field(default="AIR-CLAIM")
    claim_id_digits: int = Field(default=4, ge=1)
    daily_submission_limit: int = Field(
        default=10,
        ge=1,
        description="Claims one contributor may submit per UTC day",
    )
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    transaction_retries: int = Field(
        default=16,
        ge=1,
        description="Optimistic transaction attempts before giving up",
    )


class Settings(BaseSettings):
    """
    Root configuration aggregating all service settings.

    Usage:
        settings = get_settings()
        redis_host = settings.redis.host
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis: RedisSettings = Field(default_factory=RedisSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    api: APISettings = Field(default_factory=APISettings)
    claims: ClaimSettings = Field(default_factory=ClaimSettings)

    # Environment
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance, reading from environment on first call.
    """
    return Settings()
