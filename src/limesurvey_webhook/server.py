"""
Inbound trigger server.

Exposes the completion webhook over HTTP:
- POST <path> (default /events/survey-complete) - handle one completion event
- GET /health/live - liveness probe

Usage:
    server = WebhookServer(plugin, host="0.0.0.0", port=8090)
    await server.start()
    ...
    await server.stop()
"""

import json
import logging
from datetime import UTC, datetime

from aiohttp import web
from pydantic import ValidationError

from limesurvey_webhook.events import SurveyCompleteEvent
from limesurvey_webhook.plugin import SurveyWebhookPlugin

logger = logging.getLogger(__name__)

DEFAULT_EVENT_PATH = "/events/survey-complete"


class WebhookServer:
    """
    HTTP listener that turns completion requests into plugin runs.

    Each request runs the pipeline to completion before the reply is sent.
    The reply reports whether the survey matched the filter ("handled") and
    whether delivery succeeded ("success", null when not handled).
    """

    def __init__(
        self,
        plugin: SurveyWebhookPlugin,
        host: str = "0.0.0.0",
        port: int = 8090,
        path: str = DEFAULT_EVENT_PATH,
    ):
        self.plugin = plugin
        self.host = host
        self.port = port
        self.path = path
        self._started_at = datetime.now(UTC)
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    async def handle_event(self, request: web.Request) -> web.Response:
        """Handle POST <path> - one survey completion."""
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({"error": "Request body must be JSON"}, status=400)

        try:
            event = SurveyCompleteEvent.from_request(data)
        except ValidationError as e:
            logger.warning(
                "Rejected malformed survey event",
                extra={"error_message": str(e.errors(include_url=False))[:500]},
            )
            return web.json_response(
                {
                    "error": "Invalid survey event",
                    "details": e.errors(include_url=False, include_context=False),
                },
                status=400,
            )

        result = await self.plugin.handle(event)
        return web.json_response(
            {
                "handled": result.handled,
                "success": result.success if result.handled else None,
            },
            status=200,
        )

    async def handle_liveness(self, request: web.Request) -> web.Response:
        """Handle GET /health/live - Liveness probe."""
        uptime_seconds = (datetime.now(UTC) - self._started_at).total_seconds()
        return web.json_response(
            {
                "status": "alive",
                "uptime_seconds": int(uptime_seconds),
                "timestamp": datetime.now(UTC).isoformat(),
            },
            status=200,
        )

    def create_app(self) -> web.Application:
        """Create aiohttp application with the event and health endpoints."""
        app = web.Application()
        app.router.add_post(self.path, self.handle_event)
        app.router.add_get("/health/live", self.handle_liveness)
        return app

    @property
    def actual_port(self) -> int:
        """Bound port (differs from the configured one when port=0)."""
        if self._site and self._site._server and self._site._server.sockets:
            return self._site._server.sockets[0].getsockname()[1]
        return self.port

    async def start(self) -> None:
        """Start listening."""
        self._started_at = datetime.now(UTC)
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port, reuse_address=True)
        await self._site.start()

        logger.info(
            "Webhook trigger server started",
            extra={"host": self.host, "port": self.actual_port, "path": self.path},
        )

    async def stop(self) -> None:
        """Stop listening and release the socket."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("Webhook trigger server stopped")
