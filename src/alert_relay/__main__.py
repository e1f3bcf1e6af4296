"""CLI entry point for Alert Relay.

This module provides the main entry point for running the relay
from the command line.

Usage:
    python -m alert_relay [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from alert_relay import __version__
from alert_relay.config import Settings, clear_settings_cache, get_settings
from alert_relay.relay.exceptions import RelayError
from alert_relay.relay.formatter import MessageTemplate
from alert_relay.service import RelayService
from alert_relay.shutdown import GracefulShutdown

# Application info
APP_NAME = "Alert Relay"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

# (redacted_summary key, label) in display order
SUMMARY_LABELS = (
    ("bot_token", "Bot token:"),
    ("server", "Webhook server:"),
    ("redis_url", "Redis:"),
    ("redis_username", "Redis user:"),
    ("redis_password", "Redis password:"),
    ("subscribers_key", "Subscribers key:"),
    ("templates_dir", "Templates:"),
    ("log_level", "Log level:"),
    ("dry_run", "Dry run:"),
)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="alert-relay",
        description="Relay Alertmanager webhooks to subscribed Telegram chats.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  BOT_TOKEN=123:abc alert-relay             Relay to chats stored in local Redis
  alert-relay --config-check                Validate settings and message template
  alert-relay --dry-run --port 9093         Log rendered alerts instead of sending

Point an Alertmanager webhook_config at http://<host>:<port>/ and send
/subscribe to the bot from each chat that should receive alerts.
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and message template, then exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log alert messages instead of sending them to subscribers",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override webhook server port (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings, dry_run: bool) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        dry_run: Whether dry-run mode is enabled.
    """
    summary = settings.redacted_summary()
    summary["dry_run"] = str(dry_run)

    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    width = max(len(label) for _, label in SUMMARY_LABELS)
    for key, label in SUMMARY_LABELS:
        print(f"  {label:<{width}}  {summary[key]}")
    print(
        f"  Timeouts: store {settings.redis.timeout}s, "
        f"send attempt {settings.telegram.send_timeout}s, "
        f"poll {settings.telegram.poll_timeout}s"
    )
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Check configuration and template, then exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code.
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run)

    try:
        MessageTemplate.load(settings.templates_dir)
    except RelayError as e:
        print(f"Message template: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print("Message template: OK")
    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_service(settings: Settings, dry_run: bool) -> int:
    """Run the relay until a shutdown signal arrives.

    Args:
        settings: Application settings.
        dry_run: Whether to log alerts instead of sending them.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    try:
        async with GracefulShutdown() as shutdown:
            service = RelayService(settings, dry_run=dry_run)
            shutdown.register_cleanup(service.stop)

            logger.info("Starting relay...")
            await service.start()

            logger.info("Relay running. Press Ctrl+C to stop.")
            await shutdown.wait()
            logger.info("Shutdown signal received, stopping relay...")

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Relay failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    if args.port is not None:
        settings.server.port = args.port

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    print_config_summary(settings, dry_run)

    exit_code = asyncio.run(run_service(settings, dry_run))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
