"""ASGI middleware: request IDs, structlog context and full-stream timing."""

from __future__ import annotations

import time
from uuid import uuid4

import structlog
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from datachat.observability.logger import get_logger

logger = get_logger("middleware")


class RequestTimingMiddleware:
    """Logs each request once its body has fully streamed.

    Written against raw ASGI so the duration of Server-Sent Event responses
    covers the whole stream, not just the time to first byte.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid4())
        start = time.monotonic()
        status = 500

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.error(
                "request_failed",
                method=scope["method"],
                path=scope["path"],
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        logger.info(
            "request_completed",
            method=scope["method"],
            path=scope["path"],
            status=status,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
