"""Webhook HTTP server receiving alert batches.

The alert webhook answers on every path except ``/health`` and
``/metrics``; other methods on those two paths get 405.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import Counter, generate_latest

from alert_relay.relay.exceptions import DecodeError, StoreError, TemplateError
from alert_relay.relay.models import AlertBatch

if TYPE_CHECKING:
    from alert_relay.relay.dispatcher import AlertDispatcher
    from alert_relay.relay.formatter import AlertFormatter
    from alert_relay.relay.store import SubscriberStore

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# Every path except the operational endpoints, which answer GET only
WEBHOOK_ROUTE = r"/{path:(?!(?:health|metrics)$).*}"

WEBHOOKS_TOTAL = Counter(
    "alert_relay_webhooks_total",
    "Webhook requests received",
    ["outcome"],
)


class WebhookServer:
    """aiohttp server turning webhook requests into fan-out dispatches.

    Example:
        ```python
        server = WebhookServer(formatter, dispatcher, store, port=8080)
        await server.start()
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        formatter: AlertFormatter,
        dispatcher: AlertDispatcher,
        store: SubscriberStore,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ) -> None:
        """Initialize the server.

        Args:
            formatter: Renders alert batches into messages.
            dispatcher: Delivers messages to subscribers.
            store: Subscriber store read once per webhook.
            host: Address to bind.
            port: Port to listen on.
        """
        self.formatter = formatter
        self.dispatcher = dispatcher
        self.store = store
        self.host = host
        self.port = port

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the HTTP server is running."""
        return self._runner is not None

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        """Handle an alert webhook delivery."""
        logger.info("Action %s to %s from %s", request.method, request.path, request.remote)

        if request.method != "POST":
            WEBHOOKS_TOTAL.labels(outcome="bad_method").inc()
            return web.json_response({"error": "only POST is supported"}, status=400)

        body = await request.read()
        try:
            batch = AlertBatch.from_json(body)
            # Render everything before the first send so a template failure sends nothing
            messages = list(self.formatter.format(batch))
        except DecodeError as e:
            logger.error("Rejected webhook payload: %s", e)
            WEBHOOKS_TOTAL.labels(outcome="decode_error").inc()
            return web.json_response({"error": str(e)}, status=500)
        except TemplateError as e:
            logger.error("Failed to render alerts: %s", e)
            WEBHOOKS_TOTAL.labels(outcome="template_error").inc()
            return web.json_response({"error": str(e)}, status=500)

        logger.info(
            "Received %d alert(s) with status %r",
            len(batch.alerts),
            batch.status,
        )

        try:
            subscribers = await self.store.list_all()
        except StoreError as e:
            logger.error("Cannot read subscribers: %s", e)
            WEBHOOKS_TOTAL.labels(outcome="store_error").inc()
            return web.json_response({"error": "subscriber store unavailable"}, status=500)

        result = await self.dispatcher.dispatch(messages, subscribers)
        WEBHOOKS_TOTAL.labels(outcome="ok").inc()

        body_out: dict[str, Any] = {
            "status": "ok",
            "messages": len(messages),
            "subscribers": len(subscribers),
            "sent": result.success_count,
            "failed": result.failure_count,
        }
        return web.json_response(body_out, status=200)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        try:
            await self.store.ping()
        except StoreError as e:
            return web.json_response({"status": "unhealthy", "store": str(e)}, status=503)
        return web.json_response({"status": "healthy"}, status=200)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_route("*", WEBHOOK_ROUTE, self._handle_webhook)
        return app

    async def start(self) -> None:
        """Start listening for webhooks."""
        if self._runner:
            logger.warning("Webhook server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        logger.info("Webhook server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("Webhook server stopped")
