"""
Request middleware — correlation IDs, timing and one log line per request.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from alertwatch.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with its duration and inject an X-Request-ID header.

    Requests that end in a degraded aggregation (X-Failed-Sources set by
    the disaster routes) are logged at WARNING even though they return 200.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:16])
        path = request.url.path

        set_request_context(
            request_id=request_id,
            endpoint=path,
            method=request.method,
        )
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s → 500 (%.1fms)",
                request.method, path, duration_ms,
                extra={"duration_ms": duration_ms, "status_code": 500},
            )
            set_request_context()
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

        if not path.startswith(_QUIET_PREFIXES):
            degraded = "X-Failed-Sources" in response.headers
            level = (
                logging.WARNING
                if response.status_code >= 400 or degraded
                else logging.INFO
            )
            logger.log(
                level,
                "%s %s → %d (%.1fms)%s",
                request.method, path, response.status_code, duration_ms,
                f" degraded: {response.headers['X-Failed-Sources']}" if degraded else "",
                extra={
                    "duration_ms": duration_ms,
                    "status_code": response.status_code,
                    "endpoint": path,
                },
            )

        set_request_context()
        return response
