"""Signal-driven graceful shutdown for the relay service.

Usage:
    ```python
    async def main():
        async with GracefulShutdown() as shutdown:
            shutdown.register_cleanup(service.stop)
            await service.start()
            await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from typing import Any

logger = logging.getLogger(__name__)

# Signals to trap for graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Traps SIGTERM/SIGINT and exposes them as an awaitable event.

    A second signal while shutdown is in progress exits immediately.
    Cleanup callbacks (sync or async) run in registration order when
    the context manager exits.
    """

    def __init__(self) -> None:
        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False
        self._cleanup_callbacks: list[Callable[[], Any]] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a cleanup callback to run during shutdown."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Programmatically request shutdown."""
        if not self._shutdown_requested:
            self._shutdown_requested = True
            logger.info("Shutdown requested programmatically")
            self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until a shutdown signal arrives or request_shutdown() is called."""
        await self._shutdown_event.wait()

    def install_signal_handlers(self) -> None:
        """Install handlers on the running loop.

        Platforms without ``add_signal_handler`` (Windows) keep the default
        KeyboardInterrupt behaviour.
        """
        self._loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Remove installed signal handlers."""
        if self._loop is None:
            return
        for sig in SHUTDOWN_SIGNALS:
            with suppress(NotImplementedError, ValueError, OSError):
                self._loop.remove_signal_handler(sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)

        self._shutdown_requested = True
        logger.info("Received %s - initiating graceful shutdown...", sig.name)
        self._shutdown_event.set()

    async def run_cleanup_callbacks(self) -> None:
        """Run all registered cleanup callbacks, logging failures."""
        for callback in self._cleanup_callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
