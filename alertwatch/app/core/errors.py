"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

Upstream response bodies never reach the client: an UpstreamFetchError
only names the failing feed, the raw cause stays in the server log.

Usage:
    from alertwatch.app.core.errors import (
        DisasterAPIError,
        NotFoundError,
        ValidationError,
        UpstreamFetchError,
        register_error_handlers,
    )

    raise UpstreamFetchError("USGS", "HTTP 503")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from alertwatch.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class DisasterAPIError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(DisasterAPIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        details = {"resource": resource, **identifiers}
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class ValidationError(DisasterAPIError):
    """Input validation failed (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class UpstreamFetchError(DisasterAPIError):
    """
    One upstream feed could not be read (502).

    Covers network failures, timeouts, non-2xx responses and payloads that
    cannot be decoded. `source` is the feed name (USGS, NOAA, ...).
    """

    def __init__(self, source: str, message: str = "", **details: Any):
        self.source = source
        self.reason = message
        super().__init__(
            message=f"Upstream feed '{source}' failed",
            status_code=502,
            error_code="UPSTREAM_FETCH_ERROR",
            details={"source": source, **details},
        )


class AggregationError(DisasterAPIError):
    """The aggregation call could not produce a result (502)."""

    def __init__(self, failed_sources: Mapping[str, str]):
        self.failed_sources = dict(failed_sources)
        super().__init__(
            message="Failed to fetch disaster data",
            status_code=502,
            error_code="AGGREGATION_FAILED",
            details={"failed_sources": sorted(self.failed_sources)},
        )


class ConfigurationGap(Exception):
    """
    A feed is missing configuration (e.g. an API key).

    Not an API error: adapters catch it, log it, and report zero events.
    """

    def __init__(self, source: str, setting: str):
        super().__init__(f"{source} disabled: {setting} is not configured")
        self.source = source
        self.setting = setting


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    # Include request path in non-production
    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(DisasterAPIError)
    async def handle_disaster_error(request: Request, exc: DisasterAPIError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
