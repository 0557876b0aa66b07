"""Webhook HTTP server using aiohttp."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from aiohttp import web
from aiohttp.log import access_logger

from nahui.config import ServerConfig
from nahui.storage.store import EventStore
from nahui.utils.logging import get_logger
from nahui.webhooks.handlers import build_event, multi_to_dict
from nahui.webhooks.models import RecordResult, format_timestamp, utc_now

log = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

NOT_FOUND_BODY = {"error": "Endpoint not found"}
GENERIC_ERROR = "Something went wrong"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Resource-Policy": "same-origin",
}

CORS_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"


class BodyError(Exception):
    """The request body could not be read or parsed."""


class WebhookServer:
    """Accepts webhook calls, records them through the store, always acks."""

    def __init__(
        self,
        config: ServerConfig,
        store: EventStore,
        development: bool = False,
    ) -> None:
        self._config = config
        self._store = store
        self._development = development
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        app = self._build_app()
        self._runner = web.AppRunner(
            app,
            access_log=access_logger if self._config.access_log else None,
            shutdown_timeout=self._config.shutdown_timeout,
        )
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.bind, self._config.port)
        await site.start()
        log.info(
            "webhook_server_started",
            bind=self._config.bind,
            port=self._config.port,
            webhook_path=self._config.webhook_path,
            health_path=self._config.health_path,
        )

    async def stop(self) -> None:
        # Closes the listener, then waits for in-flight requests up to
        # shutdown_timeout before tearing the app down.
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("webhook_server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    def _build_app(self) -> web.Application:
        app = web.Application(
            client_max_size=self._config.max_body_bytes,
            middlewares=[self._headers_middleware, self._error_middleware],
        )
        app.router.add_get(self._config.health_path, self._handle_health)
        app.router.add_post(self._config.webhook_path, self._handle_webhook)
        return app

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    @web.middleware
    async def _headers_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
            response: web.StreamResponse = web.Response(status=204)
            response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
            requested = request.headers.get("Access-Control-Request-Headers")
            if requested:
                response.headers["Access-Control-Allow-Headers"] = requested
        else:
            response = await handler(request)

        response.headers.update(SECURITY_HEADERS)
        origin = self._allowed_origin(request)
        if origin is not None:
            response.headers["Access-Control-Allow-Origin"] = origin
            if origin != "*":
                response.headers["Vary"] = "Origin"
        return response

    @web.middleware
    async def _error_middleware(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        try:
            return await handler(request)
        except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
            return web.json_response(NOT_FOUND_BODY, status=404)
        except web.HTTPException:
            raise
        except Exception as exc:
            log.exception("unhandled_error", method=request.method, path=request.path)
            return self._error_response("Internal server error", exc)

    def _allowed_origin(self, request: web.Request) -> str | None:
        origins = self._config.cors_origins
        if "*" in origins:
            return "*"
        origin = request.headers.get("Origin")
        if origin and origin in origins:
            return origin
        return None

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "OK",
            "timestamp": format_timestamp(utc_now()),
            "database": "connected" if self._store.is_connected else "not connected",
        })

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        # Body errors propagate to the error middleware as a generic 500
        body = await self._read_body(request)
        try:
            event = build_event(request, body, trust_proxy=self._config.trust_proxy)

            log.info(
                "webhook_received",
                method=request.method,
                path=request.path,
                headers=event.full_request["headers"],
                body=body,
                query=event.full_request["query"],
            )

            result = await self._store.record(event)
            self._log_record(result)

            return web.json_response(event.to_ack())
        except Exception as exc:
            log.exception("webhook_processing_error", path=request.path)
            return self._error_response("Error processing webhook", exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_body(self, request: web.Request) -> Any:
        """Parse JSON or urlencoded bodies; anything else reads as ``{}``.

        Oversized bodies and malformed JSON raise ``BodyError``. aiohttp's
        own ``HTTPRequestEntityTooLarge`` is wrapped so it is not answered
        as a 413.
        """
        content_type = request.content_type
        try:
            if content_type == "application/json" or content_type.endswith("+json"):
                raw = await request.read()
                if not raw.strip():
                    return {}
                return json.loads(raw)
            if content_type == "application/x-www-form-urlencoded":
                form = await request.post()
                return multi_to_dict(form.items())
        except (ValueError, web.HTTPRequestEntityTooLarge) as exc:
            raise BodyError(str(exc)) from exc
        return {}

    def _log_record(self, result: RecordResult) -> None:
        if result.success:
            log.info("webhook_saved", id=result.id)
        elif self._store.is_connected:
            log.error("webhook_save_failed", error=result.error)
        else:
            log.info("webhook_not_persisted", msg="Database not available, webhook data logged only")

    def _error_response(self, message: str, exc: Exception) -> web.Response:
        return web.json_response(
            {
                "success": False,
                "message": message,
                "error": str(exc) if self._development else GENERIC_ERROR,
            },
            status=500,
        )
