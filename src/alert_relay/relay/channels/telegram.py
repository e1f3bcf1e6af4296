"""Telegram Bot API transport: message sending and update polling."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}/{method}"

# Telegram errors that will not go away on retry (bad chat id, bot blocked)
PERMANENT_ERROR_CODES = frozenset({400, 403})


class CommandHandler(Protocol):
    """Protocol for turning an inbound chat message into a reply."""

    async def handle(self, chat_id: str, text: str | None) -> str:
        """Return the reply text for a chat message."""
        ...


class TelegramSender:
    """Telegram Bot API sender for delivering text to a single chat.

    Sends messages via ``sendMessage`` with rate limiting and retry
    support. Formatted messages use HTML parse mode.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        rate_limit_per_second: int = 25,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        timeout: float = 10.0,
        max_retry_after: float = 5.0,
    ) -> None:
        """Initialize Telegram sender.

        Args:
            bot_token: Telegram bot token.
            rate_limit_per_second: Maximum messages per second across all chats.
            max_retries: Maximum attempts per message.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds, per attempt.
            max_retry_after: Longest 429 ``retry_after`` to wait out; longer
                ones fail the send.
        """
        self.bot_token = bot_token
        self.rate_limit_per_second = rate_limit_per_second
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.max_retry_after = max_retry_after
        self.name = "telegram"

        self._api_url = TELEGRAM_API_BASE.format(token=bot_token, method="sendMessage")

        # Rate limiting state
        self._request_times: list[float] = []
        self._lock = asyncio.Lock()

    @property
    def delivery_budget(self) -> float:
        """Upper bound in seconds for one ``send`` call, retries included.

        Covers the rate-limit wait, every attempt's HTTP timeout and the
        longest pause between attempts (backoff or 429 wait).
        """
        waits = sum(
            max(self.retry_delay * (2**attempt), self.max_retry_after)
            for attempt in range(self.max_retries)
        )
        return 1.0 + self.max_retries * self.timeout + waits

    async def _wait_for_rate_limit(self) -> None:
        """Wait if rate limit is exceeded."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self.rate_limit_per_second:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.debug("Telegram rate limit hit, waiting %.2fs", wait_time)
                    await asyncio.sleep(wait_time)
                    now = asyncio.get_running_loop().time()

            self._request_times.append(now)

    async def send(self, destination: str, text: str, *, formatted: bool = False) -> bool:
        """Send a message to one chat.

        Args:
            destination: Target chat id.
            text: Message text.
            formatted: If True, the text is sent with HTML parse mode.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        await self._wait_for_rate_limit()

        payload: dict[str, Any] = {
            "chat_id": destination,
            "text": text,
        }
        if formatted:
            payload["parse_mode"] = "HTML"

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self._api_url, json=payload)
                    result = response.json()

                    if result.get("ok"):
                        logger.debug("Telegram message delivered to %s", destination)
                        return True

                    error_code = result.get("error_code", 0)
                    description = result.get("description", "Unknown error")

                    if error_code == 429:
                        retry_after = result.get("parameters", {}).get("retry_after", 1)
                        if retry_after > self.max_retry_after:
                            logger.error(
                                "Telegram rate limited for %ss, giving up on %s",
                                retry_after,
                                destination,
                            )
                            return False
                        logger.warning("Telegram rate limited, retry after %ss", retry_after)
                        await asyncio.sleep(retry_after)
                        continue

                    logger.error(
                        "Telegram API error for %s: %s - %s",
                        destination,
                        error_code,
                        description,
                    )
                    if error_code in PERMANENT_ERROR_CODES:
                        return False

            except httpx.TimeoutException:
                logger.warning("Telegram API timeout (attempt %d)", attempt + 1)
            except httpx.HTTPError as e:
                logger.error("Telegram API error: %s", e)
            except ValueError as e:
                logger.error("Telegram API returned invalid JSON: %s", e)

            # Exponential backoff
            if attempt < self.max_retries - 1:
                delay = self.retry_delay * (2**attempt)
                await asyncio.sleep(delay)

        logger.error("Telegram delivery to %s failed after all retries", destination)
        return False


class TelegramUpdatePoller:
    """Long-polls ``getUpdates`` and answers chat commands.

    Each text message is handled in its own task; the reply is sent back
    to the originating chat through the sender.

    Example:
        ```python
        poller = TelegramUpdatePoller(token, handler, sender)
        await poller.start()
        ...
        await poller.stop()
        ```
    """

    def __init__(
        self,
        bot_token: str,
        handler: CommandHandler,
        sender: TelegramSender,
        *,
        poll_timeout: int = 30,
        error_delay: float = 5.0,
    ) -> None:
        """Initialize the poller.

        Args:
            bot_token: Telegram bot token.
            handler: Command handler producing replies.
            sender: Sender used for replies.
            poll_timeout: Server-side long-poll timeout in seconds.
            error_delay: Pause after a failed poll before retrying.
        """
        self.handler = handler
        self.sender = sender
        self.poll_timeout = poll_timeout
        self.error_delay = error_delay

        self._api_url = TELEGRAM_API_BASE.format(token=bot_token, method="getUpdates")
        self._offset: int | None = None
        self._running = False
        self._poll_task: asyncio.Task[None] | None = None
        self._update_tasks: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        """Return True if the poller is running."""
        return self._running

    @property
    def offset(self) -> int | None:
        """Next update id to request."""
        return self._offset

    async def fetch_updates(self) -> list[dict[str, Any]]:
        """Fetch pending updates, acknowledging everything before the offset.

        Raises:
            httpx.HTTPError: On transport failure.
            ValueError: If Telegram rejects the request.
        """
        params: dict[str, Any] = {
            "timeout": self.poll_timeout,
            "allowed_updates": ["message"],
        }
        if self._offset is not None:
            params["offset"] = self._offset

        async with httpx.AsyncClient(timeout=self.poll_timeout + 10) as client:
            response = await client.post(self._api_url, json=params)
            result = response.json()

        if not result.get("ok"):
            raise ValueError(
                f"getUpdates failed: {result.get('error_code')} - {result.get('description')}"
            )

        updates: list[dict[str, Any]] = result.get("result", [])
        if updates:
            self._offset = max(u["update_id"] for u in updates) + 1
        return updates

    async def process_update(self, update: dict[str, Any]) -> None:
        """Answer one update. Updates without a text message are ignored."""
        message = update.get("message")
        if not message or "text" not in message:
            return

        chat_id = str(message["chat"]["id"])
        text = message["text"]
        logger.info("Command %r from chat %s", text, chat_id)

        reply = await self.handler.handle(chat_id, text)
        if not await self.sender.send(chat_id, reply):
            logger.warning("Could not deliver reply to chat %s", chat_id)

    async def poll_once(self) -> int:
        """Fetch one batch of updates and schedule their handling.

        Returns:
            Number of updates received.
        """
        updates = await self.fetch_updates()
        for update in updates:
            task = asyncio.create_task(self._safe_process(update))
            self._update_tasks.add(task)
            task.add_done_callback(self._update_tasks.discard)
        return len(updates)

    async def _safe_process(self, update: dict[str, Any]) -> None:
        try:
            await self.process_update(update)
        except Exception as e:
            logger.error("Error processing update %s: %s", update.get("update_id"), e)

    async def _poll_loop(self) -> None:
        """Background task polling until stopped."""
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Polling Telegram updates failed: %s", e)
                await asyncio.sleep(self.error_delay)
            except Exception as e:
                logger.exception("Unexpected error in update poll loop: %s", e)
                await asyncio.sleep(self.error_delay)

    async def start(self) -> None:
        """Start polling in the background."""
        if self._running:
            return

        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("Telegram update poller started")

    async def stop(self) -> None:
        """Stop polling and wait for in-flight updates."""
        was_running = self._running
        self._running = False

        if self._poll_task:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        if self._update_tasks:
            await asyncio.gather(*self._update_tasks, return_exceptions=True)

        if was_running:
            logger.info("Telegram update poller stopped")
