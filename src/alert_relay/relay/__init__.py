"""Relay layer - webhook fan-out and subscription management."""

from alert_relay.relay.channels import DryRunSender, TelegramSender, TelegramUpdatePoller
from alert_relay.relay.commands import SubscriptionCommandHandler
from alert_relay.relay.dispatcher import (
    AlertDispatcher,
    DispatchResult,
    MessageSender,
    SendOutcome,
)
from alert_relay.relay.exceptions import (
    DecodeError,
    RelayError,
    SendError,
    StoreError,
    TemplateError,
)
from alert_relay.relay.formatter import AlertFormatter, MessageTemplate
from alert_relay.relay.models import Alert, AlertBatch, RenderedMessage
from alert_relay.relay.server import WebhookServer
from alert_relay.relay.store import RedisSubscriberStore, SubscriberStore

__all__ = [
    "Alert",
    "AlertBatch",
    "AlertDispatcher",
    "AlertFormatter",
    "DecodeError",
    "DispatchResult",
    "DryRunSender",
    "MessageSender",
    "MessageTemplate",
    "RedisSubscriberStore",
    "RelayError",
    "RenderedMessage",
    "SendError",
    "SendOutcome",
    "StoreError",
    "SubscriberStore",
    "SubscriptionCommandHandler",
    "TelegramSender",
    "TelegramUpdatePoller",
    "TemplateError",
    "WebhookServer",
]
