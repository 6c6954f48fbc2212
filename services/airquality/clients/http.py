"""
Shared HTTP plumbing for upstream clients: retry with exponential backoff
and translation of httpx failures into the catalog's UpstreamError types.

Retry policy:
  - network errors (timeouts, refused connections) and 5xx: retried
  - 4xx: raised immediately, retrying cannot help
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from services.airquality.errors import (
    UpstreamError,
    UpstreamFormatError,
    UpstreamHTTPError,
    UpstreamNetworkError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "AirQualityCitiesAPI/0.1 (+https://github.com/airquality-cities-api)"


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    source: str,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    **kwargs: Any,
) -> httpx.Response:
    """
    Issue a request, retrying transient failures.

    Args:
        source:       upstream name used in errors and logs.
        max_attempts: total attempts including the first (default 3).
        base_delay:   seconds before the first retry, doubled each time.

    Raises:
        UpstreamHTTPError:    final response had a 4xx/5xx status.
        UpstreamNetworkError: no response could be obtained.
    """
    attempts = max(1, max_attempts)
    last_error: UpstreamError = UpstreamNetworkError(source, "no attempt made")
    for attempt in range(attempts):
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            last_error = UpstreamHTTPError(source, status, exc.response.text[:200])
            if 400 <= status < 500:
                raise last_error from exc
        except httpx.TransportError as exc:
            last_error = UpstreamNetworkError(source, f"{type(exc).__name__}: {exc}")

        if attempt < attempts - 1:
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                source, attempt + 1, attempts, last_error, delay,
            )
            await asyncio.sleep(delay)

    logger.error("%s: all %d attempts failed: %s", source, attempts, last_error)
    raise last_error


def json_body(response: httpx.Response, source: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamFormatError(source, f"invalid JSON body: {exc}") from exc
