"""Service wiring for the alert relay.

Builds every collaborator once from Settings and hands them to the
webhook server and the update poller explicitly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from redis.asyncio import Redis

from alert_relay.relay.channels import DryRunSender, TelegramSender, TelegramUpdatePoller
from alert_relay.relay.commands import SubscriptionCommandHandler
from alert_relay.relay.dispatcher import AlertDispatcher, MessageSender
from alert_relay.relay.formatter import AlertFormatter, MessageTemplate
from alert_relay.relay.server import WebhookServer
from alert_relay.relay.store import RedisSubscriberStore

if TYPE_CHECKING:
    from alert_relay.config import Settings

logger = logging.getLogger(__name__)


def create_redis(settings: Settings) -> Redis:
    """Create the Redis client for the subscriber store."""
    password = settings.redis.password.get_secret_value()
    return Redis.from_url(
        settings.redis.url,
        username=settings.redis.username or None,
        password=password or None,
        decode_responses=True,
        socket_timeout=settings.redis.timeout,
        socket_connect_timeout=settings.redis.timeout,
    )


class RelayService:
    """Owns the relay components and their lifecycle.

    Example:
        ```python
        service = RelayService(get_settings())
        await service.start()
        ...
        await service.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dry_run: bool = False,
        redis: Redis | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings.
            dry_run: Log alert messages instead of sending them.
            redis: Pre-built Redis client, mainly for tests.

        Raises:
            TemplateError: If the configured message template is unusable.
        """
        self.settings = settings
        self.dry_run = dry_run

        token = settings.telegram.bot_token.get_secret_value()

        self.redis = redis if redis is not None else create_redis(settings)
        self.store = RedisSubscriberStore(
            self.redis,
            key=settings.redis.subscribers_key,
            timeout=settings.redis.timeout,
        )
        self.formatter = AlertFormatter(MessageTemplate.load(settings.templates_dir))

        self.telegram = TelegramSender(token, timeout=settings.telegram.send_timeout)
        alert_sender: MessageSender = DryRunSender() if dry_run else self.telegram
        # SEND_TIMEOUT bounds each HTTP attempt; the dispatcher waits for all of them
        self.dispatcher = AlertDispatcher(
            alert_sender,
            send_timeout=self.telegram.delivery_budget,
        )

        self.commands = SubscriptionCommandHandler(self.store)
        self.poller = TelegramUpdatePoller(
            token,
            self.commands,
            self.telegram,
            poll_timeout=settings.telegram.poll_timeout,
        )
        self.server = WebhookServer(
            self.formatter,
            self.dispatcher,
            self.store,
            host=settings.server.host,
            port=settings.server.port,
        )

    async def start(self) -> None:
        """Check the store, then start the webhook server and the poller.

        Raises:
            StoreError: If Redis is unreachable.
        """
        await self.store.ping()
        logger.info("Connected to Redis at %s", self.settings.redis.url)

        await self.server.start()
        await self.poller.start()

    async def stop(self) -> None:
        """Stop accepting work and close the Redis client."""
        await self.poller.stop()
        await self.server.stop()
        await self.redis.aclose()
        logger.info("Relay service stopped")
