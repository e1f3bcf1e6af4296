"""Sender that logs messages instead of delivering them."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class DryRunSender:
    """Logs every message and reports success. Used with ``--dry-run``."""

    def __init__(self) -> None:
        self.name = "dry-run"

    async def send(self, destination: str, text: str, *, formatted: bool = False) -> bool:
        logger.info("[dry-run] to %s (formatted=%s):\n%s", destination, formatted, text)
        return True
