import time
import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ward_monitor.core.config import settings

# SSE responses stay open for the life of the client; timing them is noise.
_STREAMING_PATH_SUFFIXES = ("/alerts/stream",)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request ids into structlog context and log one line per request."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            correlation_id=request.headers.get("X-Correlation-ID") or request_id,
            method=request.method,
            path=request.url.path,
        )
        logger = structlog.get_logger("ward_monitor.http")
        if settings.ENVIRONMENT in ["local", "dev"]:
            logger.debug("request_started")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", duration=time.perf_counter() - started)
            raise

        if not request.url.path.endswith(_STREAMING_PATH_SUFFIXES):
            logger.info(
                "request_finished",
                status_code=response.status_code,
                duration=time.perf_counter() - started,
            )
        response.headers["X-Request-ID"] = request_id
        return response
