"""Tests for configuration management service."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from alert_relay.config import (
    RedisSettings,
    ServerSettings,
    Settings,
    TelegramSettings,
    clear_settings_cache,
    get_settings,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

BASE_ENV = {"BOT_TOKEN": "123456:ABC-DEF"}


@pytest.fixture(autouse=True)
def clear_cache() -> Iterator[None]:
    """Clear settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestTelegramSettings:
    """Tests for TelegramSettings."""

    def test_token_required(self) -> None:
        """Test that a missing bot token is a validation error."""
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ValidationError):
            TelegramSettings()

    def test_blank_token_rejected(self) -> None:
        """Test that a whitespace-only token is rejected."""
        with (
            patch.dict(os.environ, {"BOT_TOKEN": "  "}, clear=True),
            pytest.raises(ValidationError, match="must not be empty"),
        ):
            TelegramSettings()

    def test_defaults(self) -> None:
        """Test polling and send defaults."""
        with patch.dict(os.environ, BASE_ENV, clear=True):
            settings = TelegramSettings()
            assert settings.bot_token.get_secret_value() == "123456:ABC-DEF"
            assert settings.poll_timeout == 30
            assert settings.send_timeout == 5.0


class TestServerSettings:
    """Tests for ServerSettings."""

    def test_defaults(self) -> None:
        """Test default bind address."""
        with patch.dict(os.environ, {}, clear=True):
            settings = ServerSettings()
            assert settings.host == "0.0.0.0"
            assert settings.port == 8080

    def test_custom_values(self) -> None:
        """Test host and port from environment."""
        with patch.dict(os.environ, {"SERVER_HOST": "127.0.0.1", "SERVER_PORT": "9000"}):
            settings = ServerSettings()
            assert settings.host == "127.0.0.1"
            assert settings.port == 9000

    def test_invalid_port_raises(self) -> None:
        """Test out-of-range port is rejected."""
        with (
            patch.dict(os.environ, {"SERVER_PORT": "70000"}),
            pytest.raises(ValidationError),
        ):
            ServerSettings()


class TestRedisSettings:
    """Tests for RedisSettings."""

    def test_default_address(self) -> None:
        """Test default host:port becomes a redis:// URL."""
        with patch.dict(os.environ, {}, clear=True):
            settings = RedisSettings()
            assert settings.uri == "127.0.0.1:6379"
            assert settings.url == "redis://127.0.0.1:6379"
            assert settings.subscribers_key == "subscribers"
            assert settings.timeout == 2.0

    def test_redis_url_kept(self) -> None:
        """Test a full redis:// URL is used as is."""
        with patch.dict(os.environ, {"DB_URI": "redis://redis:6380/1"}):
            assert RedisSettings().url == "redis://redis:6380/1"

    def test_invalid_scheme_raises(self) -> None:
        """Test that a non-Redis URL raises validation error."""
        with (
            patch.dict(os.environ, {"DB_URI": "http://localhost:6379"}),
            pytest.raises(ValidationError, match="redis://"),
        ):
            RedisSettings()

    def test_credentials(self) -> None:
        """Test username and password are read."""
        with patch.dict(os.environ, {"DB_USERNAME": "relay", "DB_PASSWORD": "hunter2"}):
            settings = RedisSettings()
            assert settings.username == "relay"
            assert settings.password.get_secret_value() == "hunter2"


class TestSettings:
    """Tests for the main Settings class."""

    def test_defaults(self) -> None:
        """Test application-level defaults."""
        with patch.dict(os.environ, BASE_ENV, clear=True):
            settings = Settings()
            assert settings.log_level == "INFO"
            assert settings.dry_run is False
            assert settings.templates_dir is None
            assert settings.get_logging_level() == logging.INFO

    def test_templates_dir(self) -> None:
        """Test TEMPLATES_DIR is parsed as a path."""
        with patch.dict(os.environ, {**BASE_ENV, "TEMPLATES_DIR": "/etc/relay"}, clear=True):
            assert Settings().templates_dir == Path("/etc/relay")

    def test_invalid_log_level(self) -> None:
        """Test unknown log level is rejected."""
        with (
            patch.dict(os.environ, {**BASE_ENV, "LOG_LEVEL": "LOUD"}, clear=True),
            pytest.raises(ValidationError),
        ):
            Settings()

    def test_redacted_summary_hides_secrets(self) -> None:
        """Test secrets never appear in the summary."""
        env = {**BASE_ENV, "DB_PASSWORD": "hunter2", "DB_USERNAME": "relay"}
        with patch.dict(os.environ, env, clear=True):
            summary = Settings().redacted_summary()

        assert summary["bot_token"] == "123456:***"
        assert summary["redis_password"] == "(set)"
        assert summary["redis_username"] == "relay"
        assert "ABC-DEF" not in str(summary)
        assert "hunter2" not in str(summary)

    def test_get_settings_is_cached(self) -> None:
        """Test get_settings returns the same instance until cleared."""
        with patch.dict(os.environ, BASE_ENV, clear=True):
            first = get_settings()
            assert get_settings() is first
            clear_settings_cache()
            assert get_settings() is not first
