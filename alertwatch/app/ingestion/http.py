"""
Shared async HTTP layer for the feed adapters.

All adapters read JSON through `fetch_json`, which owns the retry policy
and turns every transport problem into an `UpstreamFetchError`:

    Network errors / timeouts  → retry with exponential backoff
    HTTP 429 and 5xx           → retry (transient on the provider side)
    HTTP 4xx                   → fail immediately (retrying will not help)
    Undecodable body           → fail immediately

After the last attempt the error propagates to the aggregator, which
decides whether the whole call fails or degrades (see FailureMode).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from alertwatch.app.core.config import Settings
from alertwatch.app.core.errors import UpstreamFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpPolicy:
    """Per-request timeout and retry settings."""
    timeout_seconds: float = 10.0
    max_retries: int = 2
    backoff_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpPolicy":
        return cls(
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
            max_retries=settings.HTTP_MAX_RETRIES,
            backoff_seconds=settings.HTTP_RETRY_BACKOFF_SECONDS,
        )


DEFAULT_HTTP_POLICY = HttpPolicy()


async def fetch_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    policy: HttpPolicy = DEFAULT_HTTP_POLICY,
) -> Any:
    """
    GET url and decode the JSON body.

    Raises
    ------
    UpstreamFetchError
        On timeout, transport failure, non-2xx status or a body that is not
        JSON. Retryable failures are retried `policy.max_retries` times.
    """
    last_error = ""

    for attempt in range(policy.max_retries + 1):
        if attempt > 0:
            wait = policy.backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "%s retry %d/%d after %.1fs — %s",
                source, attempt, policy.max_retries, wait, last_error,
            )
            await asyncio.sleep(wait)

        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=policy.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            last_error = f"timeout after {policy.timeout_seconds}s ({type(exc).__name__})"
            continue
        except httpx.TransportError as exc:
            last_error = f"transport error: {exc}"
            continue

        status = response.status_code
        if status == 429 or status >= 500:
            last_error = f"HTTP {status}"
            continue
        if status >= 400:
            logger.error("%s returned HTTP %d for %s", source, status, url)
            raise UpstreamFetchError(source, f"HTTP {status}", status_code=status)

        try:
            return response.json()
        except ValueError as exc:
            logger.error("%s returned a body that is not JSON: %s", source, exc)
            raise UpstreamFetchError(source, "malformed JSON body") from exc

    logger.error(
        "%s failed after %d attempts: %s",
        source, policy.max_retries + 1, last_error,
    )
    raise UpstreamFetchError(
        source,
        f"failed after {policy.max_retries + 1} attempts: {last_error}",
    )
