"""Custom middleware for the API."""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from netpad.utils.logging import get_logger

logger = get_logger(__name__)

# Endpoints polled every few seconds; logged at debug to keep logs readable.
_QUIET_SUFFIXES = ("/status", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and bind its ID to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        path = request.url.path
        log = logger.debug if path.endswith(_QUIET_SUFFIXES) else logger.info

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            log("request.started", method=request.method, path=path)
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            log(
                "request.completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response
