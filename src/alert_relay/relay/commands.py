"""Subscription command handling for inbound chat messages."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from prometheus_client import Counter

from alert_relay.relay.exceptions import StoreError

if TYPE_CHECKING:
    from alert_relay.relay.store import SubscriberStore

logger = logging.getLogger(__name__)

SUBSCRIBE_COMMAND = "/subscribe"
UNSUBSCRIBE_COMMAND = "/unsubscribe"
KNOWN_COMMANDS = frozenset({SUBSCRIBE_COMMAND, UNSUBSCRIBE_COMMAND})

SUBSCRIBED_REPLY = "Successfully subscribed"
UNSUBSCRIBED_REPLY = "Successfully unsubscribed"
HELP_REPLY = "Unknown command.\nUse /subscribe or /unsubscribe"
STORE_ERROR_REPLY = "Something went wrong, please try again later"

COMMANDS_TOTAL = Counter(
    "alert_relay_commands_total",
    "Chat commands handled",
    ["command", "outcome"],
)


def parse_command(text: str | None) -> str:
    """Match a chat message against the known commands.

    Surrounding whitespace and a ``@botname`` suffix are ignored, so
    ``/subscribe@relay_bot`` parses as ``/subscribe``. Anything else,
    including arguments or a different case, is not a command and
    yields an empty string.
    """
    if not text:
        return ""
    token = text.strip()
    if any(ch.isspace() for ch in token):
        return ""
    command = token.split("@", 1)[0]
    if command in KNOWN_COMMANDS:
        return command
    return ""


class SubscriptionCommandHandler:
    """Applies /subscribe and /unsubscribe to the subscriber store.

    The handler keeps no state of its own. Every call returns the reply
    text for the requesting chat, including when the store is down.
    """

    def __init__(self, store: SubscriberStore) -> None:
        self.store = store

    async def handle(self, chat_id: str, text: str | None) -> str:
        """Process one inbound chat message.

        Args:
            chat_id: Identifier of the chat that sent the message.
            text: Raw message text.

        Returns:
            Reply text to send back to the chat.
        """
        command = parse_command(text)

        if command == SUBSCRIBE_COMMAND:
            return await self._run(command, self.subscribe, chat_id, SUBSCRIBED_REPLY)
        if command == UNSUBSCRIBE_COMMAND:
            return await self._run(command, self.unsubscribe, chat_id, UNSUBSCRIBED_REPLY)

        COMMANDS_TOTAL.labels(command="unknown", outcome="help").inc()
        logger.debug("Unknown command from %s: %r", chat_id, text)
        return HELP_REPLY

    async def _run(
        self,
        command: str,
        action: Callable[[str], Awaitable[object]],
        chat_id: str,
        reply: str,
    ) -> str:
        """Run a store action, mapping store failures to a retry reply."""
        try:
            await action(chat_id)
        except StoreError as e:
            logger.error("%s for %s failed: %s", command, chat_id, e)
            COMMANDS_TOTAL.labels(command=command, outcome="error").inc()
            return STORE_ERROR_REPLY
        COMMANDS_TOTAL.labels(command=command, outcome="success").inc()
        return reply

    async def subscribe(self, chat_id: str) -> bool:
        """Add the chat to the subscriber list if absent.

        Returns:
            True if the chat was newly added.
        """
        added = await self.store.append(chat_id)
        logger.info("Chat %s subscribed (new=%s)", chat_id, added)
        return added

    async def unsubscribe(self, chat_id: str) -> int:
        """Remove every occurrence of the chat from the subscriber list.

        Returns:
            Number of entries removed.
        """
        removed = await self.store.remove_all(chat_id)
        logger.info("Chat %s unsubscribed (removed=%d)", chat_id, removed)
        return removed
