"""
HTTP request logging middleware for Catalog Service.

Establishes the correlation ID for every request, stores it on
``request.state`` for handlers and error responses, and echoes it back in
the ``X-Correlation-ID`` response header.
"""

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...utils.logging import setup_catalog_logging

logger = setup_catalog_logging("catalog_service_request_logging")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        start_time = time.time()

        response = await call_next(request)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            "HTTP request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "event_type": "http_request_complete",
            },
        )

        response.headers["X-Correlation-ID"] = correlation_id
        return response
