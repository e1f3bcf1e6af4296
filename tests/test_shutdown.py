"""Tests for the graceful shutdown handler."""

from __future__ import annotations

import asyncio
import signal
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from alert_relay.shutdown import SHUTDOWN_SIGNALS, GracefulShutdown


class TestRequestShutdown:
    """Tests for programmatic shutdown requests."""

    def test_initial_state(self) -> None:
        """Should start in non-shutdown state."""
        shutdown = GracefulShutdown()
        assert shutdown.is_shutdown_requested is False

    async def test_request_shutdown_sets_event(self) -> None:
        """Should set the shutdown event when called."""
        shutdown = GracefulShutdown()

        shutdown.request_shutdown()
        shutdown.request_shutdown()

        assert shutdown.is_shutdown_requested is True
        await asyncio.wait_for(shutdown.wait(), timeout=1.0)

    async def test_wait_blocks_until_shutdown(self) -> None:
        """Wait should block until shutdown is requested."""
        shutdown = GracefulShutdown()

        async def request_after_delay() -> None:
            await asyncio.sleep(0.05)
            shutdown.request_shutdown()

        task = asyncio.create_task(request_after_delay())
        await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        await task

        assert shutdown.is_shutdown_requested is True


class TestSignalHandlers:
    """Tests for signal handler installation and handling."""

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix-specific test")
    async def test_unix_signal_handlers_installed(self) -> None:
        """On Unix, should install a loop handler per shutdown signal."""
        shutdown = GracefulShutdown()
        loop = asyncio.get_running_loop()

        with (
            patch.object(loop, "add_signal_handler") as mock_add,
            patch.object(loop, "remove_signal_handler") as mock_remove,
        ):
            shutdown.install_signal_handlers()
            shutdown.remove_signal_handlers()

        assert mock_add.call_count == len(SHUTDOWN_SIGNALS)
        assert mock_remove.call_count == len(SHUTDOWN_SIGNALS)

    async def test_unsupported_platform_does_not_raise(self) -> None:
        """Missing loop signal support is logged, not raised."""
        shutdown = GracefulShutdown()
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler", side_effect=NotImplementedError):
            shutdown.install_signal_handlers()

    def test_first_signal_sets_shutdown_event(self) -> None:
        """First signal should request shutdown."""
        shutdown = GracefulShutdown()

        shutdown._handle_signal(signal.SIGTERM)

        assert shutdown.is_shutdown_requested is True

    def test_second_signal_force_exits(self) -> None:
        """Second signal should exit immediately."""
        shutdown = GracefulShutdown()
        shutdown._handle_signal(signal.SIGINT)

        with pytest.raises(SystemExit) as exc_info:
            shutdown._handle_signal(signal.SIGTERM)

        assert exc_info.value.code == 128 + signal.SIGTERM.value

    def test_shutdown_signals(self) -> None:
        """SIGTERM and SIGINT are both trapped."""
        assert signal.SIGTERM in SHUTDOWN_SIGNALS
        assert signal.SIGINT in SHUTDOWN_SIGNALS


class TestCleanupCallbacks:
    """Tests for cleanup callback execution."""

    async def test_runs_sync_and_async_callbacks_in_order(self) -> None:
        """Should run sync and async callbacks in registration order."""
        shutdown = GracefulShutdown()
        order: list[str] = []

        async def async_callback() -> None:
            order.append("async")

        shutdown.register_cleanup(lambda: order.append("sync"))
        shutdown.register_cleanup(async_callback)

        await shutdown.run_cleanup_callbacks()

        assert order == ["sync", "async"]

    async def test_cleanup_callback_error_logged(self) -> None:
        """A failing callback should not stop the ones after it."""
        shutdown = GracefulShutdown()
        after = AsyncMock()

        def failing_callback() -> None:
            raise ValueError("Cleanup failed")

        shutdown.register_cleanup(failing_callback)
        shutdown.register_cleanup(after)

        await shutdown.run_cleanup_callbacks()

        after.assert_awaited_once()


class TestAsyncContextManager:
    """Tests for async context manager protocol."""

    async def test_context_manager_removes_handlers_and_cleans_up(self) -> None:
        """Exiting context should remove handlers and run cleanup."""
        shutdown = GracefulShutdown()
        callback = MagicMock()
        shutdown.register_cleanup(callback)

        with patch.object(shutdown, "remove_signal_handlers") as mock_remove:
            async with shutdown:
                pass

            mock_remove.assert_called_once()

        callback.assert_called_once()

    async def test_cleanup_runs_when_body_raises(self) -> None:
        """Cleanup runs even if the body fails."""
        shutdown = GracefulShutdown()
        callback = AsyncMock()
        shutdown.register_cleanup(callback)

        with pytest.raises(RuntimeError):
            async with shutdown:
                raise RuntimeError("start failed")

        callback.assert_awaited_once()
