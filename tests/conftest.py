"""Shared fixtures: in-memory collaborators for the relay core."""

from __future__ import annotations

import pytest

from alert_relay.relay.exceptions import StoreError


class InMemorySubscriberStore:
    """List-backed subscriber store with the Redis store's semantics."""

    def __init__(self, subscribers: list[str] | None = None, *, fail: bool = False) -> None:
        self.subscribers: list[str] = list(subscribers or [])
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise StoreError("store unavailable")

    async def append(self, subscriber: str) -> bool:
        self._check()
        if subscriber in self.subscribers:
            return False
        self.subscribers.append(subscriber)
        return True

    async def remove_all(self, subscriber: str) -> int:
        self._check()
        before = len(self.subscribers)
        self.subscribers = [s for s in self.subscribers if s != subscriber]
        return before - len(self.subscribers)

    async def list_all(self) -> list[str]:
        self._check()
        return list(self.subscribers)

    async def ping(self) -> bool:
        self._check()
        return True


class RecordingSender:
    """Sender recording every call; destinations in ``failing`` are rejected."""

    def __init__(self, failing: set[str] | None = None, *, raising: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.raising = raising or set()
        self.calls: list[tuple[str, str, bool]] = []

    async def send(self, destination: str, text: str, *, formatted: bool = False) -> bool:
        self.calls.append((destination, text, formatted))
        if destination in self.raising:
            raise ConnectionError(f"{destination} unreachable")
        return destination not in self.failing


@pytest.fixture
def store() -> InMemorySubscriberStore:
    """Empty in-memory subscriber store."""
    return InMemorySubscriberStore()


@pytest.fixture
def failing_store() -> InMemorySubscriberStore:
    """Store whose every operation raises StoreError."""
    return InMemorySubscriberStore(fail=True)


@pytest.fixture
def sender() -> RecordingSender:
    """Sender that accepts every message."""
    return RecordingSender()


@pytest.fixture
def make_sender() -> type[RecordingSender]:
    """Factory for senders with failing or raising destinations."""
    return RecordingSender


@pytest.fixture
def critical_payload() -> dict[str, object]:
    """Single critical alert webhook body."""
    return {
        "status": "firing",
        "alerts": [
            {
                "labels": {"severity": "critical"},
                "annotations": {"summary": "disk full", "description": "95% used"},
                "generatorURL": "http://x",
            }
        ],
    }
