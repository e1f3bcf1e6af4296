"""Message transports for delivering alerts and replies."""

from alert_relay.relay.channels.dry_run import DryRunSender
from alert_relay.relay.channels.telegram import TelegramSender, TelegramUpdatePoller

__all__ = [
    "DryRunSender",
    "TelegramSender",
    "TelegramUpdatePoller",
]
