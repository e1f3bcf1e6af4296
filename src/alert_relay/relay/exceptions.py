"""Exceptions raised by the relay core."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all relay errors."""


class DecodeError(RelayError):
    """Inbound webhook payload could not be decoded."""


class TemplateError(RelayError):
    """Message template could not be loaded or rendered."""


class StoreError(RelayError):
    """Subscriber store operation failed or timed out."""


class SendError(RelayError):
    """Message could not be delivered to a single destination."""

    def __init__(self, destination: str, reason: str) -> None:
        super().__init__(f"Failed to send to {destination}: {reason}")
        self.destination = destination
        self.reason = reason
