"""Fan-out dispatcher delivering rendered alerts to every subscriber."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from prometheus_client import Counter

from alert_relay.relay.exceptions import SendError

if TYPE_CHECKING:
    from alert_relay.relay.models import RenderedMessage

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0

SENDS_TOTAL = Counter(
    "alert_relay_sends_total",
    "Messages sent to subscribers",
    ["outcome"],
)


class MessageSender(Protocol):
    """Protocol for delivering text to a single chat."""

    async def send(self, destination: str, text: str, *, formatted: bool = False) -> bool:
        """Send text to destination. Returns True on success."""
        ...


@dataclass(frozen=True)
class SendOutcome:
    """Result of one (message, subscriber) send."""

    message_index: int
    subscriber: str
    success: bool
    error: str | None = None


@dataclass
class DispatchResult:
    """Aggregated result of a fan-out dispatch."""

    outcomes: list[SendOutcome] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def all_succeeded(self) -> bool:
        """Return True if every send succeeded."""
        return self.failure_count == 0

    @property
    def failed_subscribers(self) -> list[str]:
        """Subscribers with at least one failed send, in first-failure order."""
        seen: dict[str, None] = {}
        for outcome in self.outcomes:
            if not outcome.success:
                seen.setdefault(outcome.subscriber, None)
        return list(seen)


class AlertDispatcher:
    """Sends every message to every subscriber, message-major.

    All subscribers receive message 1 before anyone receives message 2.
    A failing subscriber never stops delivery to the others: each send
    is recorded as a SendOutcome and the loop continues.
    """

    def __init__(
        self,
        sender: MessageSender,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            sender: Channel delivering text to a single chat.
            send_timeout: Upper bound in seconds for each send.
        """
        self.sender = sender
        self.send_timeout = send_timeout

    async def _deliver(self, subscriber: str, text: str) -> None:
        """Send one message under the send timeout.

        Raises:
            SendError: If the sender rejects the message or times out.
        """
        try:
            success = await asyncio.wait_for(
                self.sender.send(subscriber, text, formatted=True),
                timeout=self.send_timeout,
            )
        except TimeoutError as e:
            raise SendError(subscriber, f"timed out after {self.send_timeout}s") from e
        if not success:
            raise SendError(subscriber, "rejected by sender")

    async def _send_one(self, index: int, subscriber: str, text: str) -> SendOutcome:
        """Send one message to one subscriber, capturing any failure."""
        try:
            await self._deliver(subscriber, text)
        except SendError as e:
            logger.warning("Message %d: %s", index, e)
            return SendOutcome(index, subscriber, False, e.reason)
        except Exception as e:
            logger.error("Error sending message %d to %s: %s", index, subscriber, e)
            return SendOutcome(index, subscriber, False, str(e))
        return SendOutcome(index, subscriber, True)

    async def dispatch(
        self,
        messages: Iterable[RenderedMessage],
        subscribers: Sequence[str],
    ) -> DispatchResult:
        """Deliver each message to each subscriber.

        Args:
            messages: Rendered messages, consumed in order.
            subscribers: Snapshot of subscriber ids.

        Returns:
            DispatchResult with one outcome per (message, subscriber) pair.
        """
        result = DispatchResult()

        for index, message in enumerate(messages):
            for subscriber in subscribers:
                outcome = await self._send_one(index, subscriber, message.text)
                SENDS_TOTAL.labels(outcome="success" if outcome.success else "failure").inc()
                result.outcomes.append(outcome)

        if not subscribers:
            logger.warning("No subscribers to dispatch to")
        elif result.all_succeeded:
            logger.info("Dispatch complete: %d sends succeeded", result.success_count)
        else:
            logger.warning(
                "Dispatch complete: %d/%d sends failed (subscribers: %s)",
                result.failure_count,
                len(result.outcomes),
                ", ".join(result.failed_subscribers),
            )

        return result
