"""Redis-backed subscriber store.

Subscribers are kept in a single Redis list of chat ids, in subscription
order. Every operation is bounded by a timeout and surfaces failures as
StoreError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from alert_relay.relay.exceptions import StoreError

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBERS_KEY = "subscribers"
DEFAULT_STORE_TIMEOUT = 2.0

# Append ARGV[1] to list KEYS[1] unless already present. Returns 1 if added.
APPEND_IF_ABSENT_SCRIPT = """
local items = redis.call('LRANGE', KEYS[1], 0, -1)
for _, item in ipairs(items) do
    if item == ARGV[1] then
        return 0
    end
end
redis.call('RPUSH', KEYS[1], ARGV[1])
return 1
"""


class SubscriberStore(Protocol):
    """Protocol for the persistent subscriber list."""

    async def append(self, subscriber: str) -> bool:
        """Add a subscriber if absent. Returns True if it was added."""
        ...

    async def remove_all(self, subscriber: str) -> int:
        """Remove every occurrence of a subscriber. Returns the count removed."""
        ...

    async def list_all(self) -> list[str]:
        """Return all subscribers in subscription order."""
        ...

    async def ping(self) -> bool:
        """Return True if the store is reachable."""
        ...


class RedisSubscriberStore:
    """Subscriber list stored in a Redis list.

    The append path runs as a server-side script so the membership check
    and the push are atomic, which keeps concurrent ``/subscribe``
    commands from the same chat from creating duplicates.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        store = RedisSubscriberStore(redis)
        await store.append("12345")
        subscribers = await store.list_all()
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key: str = DEFAULT_SUBSCRIBERS_KEY,
        timeout: float = DEFAULT_STORE_TIMEOUT,
    ) -> None:
        """Initialize the store.

        Args:
            redis: Redis async client.
            key: Key of the list holding subscriber ids.
            timeout: Upper bound in seconds for each operation.
        """
        self._redis = redis
        self.key = key
        self.timeout = timeout
        self._append_script = redis.register_script(APPEND_IF_ABSENT_SCRIPT)

    async def _run(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        """Await a Redis call under the store timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as e:
            raise StoreError(f"Store {operation} timed out after {self.timeout}s") from e
        except RedisError as e:
            raise StoreError(f"Store {operation} failed: {e}") from e

    async def append(self, subscriber: str) -> bool:
        """Append a subscriber unless it is already in the list.

        Args:
            subscriber: Chat id to add.

        Returns:
            True if the subscriber was added, False if already present.

        Raises:
            StoreError: On timeout or Redis failure.
        """
        added = await self._run(
            "append",
            self._append_script(keys=[self.key], args=[subscriber]),
        )
        if added:
            logger.info("Added subscriber %s", subscriber)
        else:
            logger.debug("Subscriber %s already present", subscriber)
        return bool(added)

    async def remove_all(self, subscriber: str) -> int:
        """Remove every occurrence of a subscriber.

        Args:
            subscriber: Chat id to remove.

        Returns:
            Number of entries removed (0 for a non-member).

        Raises:
            StoreError: On timeout or Redis failure.
        """
        removed = await self._run("remove", self._redis.lrem(self.key, 0, subscriber))
        logger.info("Removed subscriber %s (%d entries)", subscriber, removed)
        return int(removed)

    async def list_all(self) -> list[str]:
        """Get a snapshot of all subscribers.

        Returns:
            Subscriber ids in subscription order.

        Raises:
            StoreError: On timeout or Redis failure.
        """
        items = await self._run("list", self._redis.lrange(self.key, 0, -1))
        return [item.decode() if isinstance(item, bytes) else str(item) for item in items]

    async def ping(self) -> bool:
        """Check that the store is reachable.

        Raises:
            StoreError: On timeout or Redis failure.
        """
        return bool(await self._run("ping", self._redis.ping()))
