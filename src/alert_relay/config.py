"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Alert Relay service, loading and validating environment variables at
startup. Variable names follow the deployment convention of the relay
(``BOT_TOKEN``, ``SERVER_HOST``, ``DB_URI`` ...).
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram Bot API settings."""

    model_config = SettingsConfigDict(env_prefix="")

    bot_token: SecretStr = Field(
        alias="BOT_TOKEN",
        description="Telegram bot token",
    )
    poll_timeout: int = Field(
        default=30,
        alias="POLL_TIMEOUT",
        description="Long-poll timeout for getUpdates in seconds",
        ge=0,
    )
    send_timeout: float = Field(
        default=5.0,
        alias="SEND_TIMEOUT",
        description="HTTP timeout in seconds for a single send attempt",
        gt=0,
    )

    @field_validator("bot_token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        """Reject blank bot tokens."""
        if not v.get_secret_value().strip():
            raise ValueError("BOT_TOKEN must not be empty")
        return v


class ServerSettings(BaseSettings):
    """Webhook HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="")

    host: str = Field(
        default="0.0.0.0",
        alias="SERVER_HOST",
        description="Address the webhook server binds to",
    )
    port: int = Field(
        default=8080,
        alias="SERVER_PORT",
        description="Port the webhook server listens on",
        ge=1,
        le=65535,
    )


class RedisSettings(BaseSettings):
    """Redis subscriber store settings."""

    model_config = SettingsConfigDict(env_prefix="")

    uri: str = Field(
        default="127.0.0.1:6379",
        alias="DB_URI",
        description="Redis address as host:port or a redis:// URL",
    )
    username: str = Field(default="", alias="DB_USERNAME")
    password: SecretStr = Field(default=SecretStr(""), alias="DB_PASSWORD")
    subscribers_key: str = Field(
        default="subscribers",
        alias="SUBSCRIBERS_KEY",
        description="Key of the Redis list holding subscriber chat ids",
    )
    timeout: float = Field(
        default=2.0,
        alias="STORE_TIMEOUT",
        description="Upper bound in seconds for a single store operation",
        gt=0,
    )

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Validate Redis address format."""
        if v.startswith(("redis://", "rediss://")):
            return v
        if "://" in v:
            raise ValueError("DB_URI must be host:port or start with redis://")
        return v

    @property
    def url(self) -> str:
        """Redis connection URL, without credentials."""
        if self.uri.startswith(("redis://", "rediss://")):
            return self.uri
        return f"redis://{self.uri}"


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from alert_relay.config import get_settings

        settings = get_settings()
        print(settings.redis.url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    # Application settings
    templates_dir: Path | None = Field(
        default=None,
        alias="TEMPLATES_DIR",
        description="Directory containing message-template.html",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log outgoing messages instead of sending them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "bot_token": self._redact_token(self.telegram.bot_token.get_secret_value()),
            "server": f"{self.server.host}:{self.server.port}",
            "redis_url": self.redis.url,
            "redis_username": self.redis.username or "(not set)",
            "redis_password": "(set)" if self.redis.password.get_secret_value() else "(not set)",
            "subscribers_key": self.redis.subscribers_key,
            "templates_dir": str(self.templates_dir) if self.templates_dir else "(built-in)",
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_token(token: str) -> str:
        """Keep only the bot id part of a ``<id>:<secret>`` token."""
        if ":" in token:
            return f"{token.split(':', 1)[0]}:***"
        return "***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
