"""
OpenAQ v3 client — live measurement API.

GET /v3/locations?country=PL&limit=1000&page=1 returns:
  {
    "meta":    {"found": 123, ...},
    "results": [
      {
        "id": 2178,
        "name": "Warszawa - Marszałkowska",
        "locality": "Warszawa",
        "coordinates": {"latitude": 52.2, "longitude": 21.0},
        "sensors": [{"id": 1, "parameter": {"name": "pm25", "units": "µg/m³"}}]
      }
    ]
  }

An optional API key is sent as the X-API-Key header. HTTP status failures
and network failures surface as distinct UpstreamError subclasses.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from services.airquality.clients.http import USER_AGENT, json_body, request_with_retry
from services.airquality.errors import UpstreamFormatError

logger = logging.getLogger(__name__)

SOURCE = "openaq"
_LOCATIONS_PATH = "/v3/locations"
_DEFAULT_LIMIT = 1000


def build_http_client(base_url: str, api_key: str = "", timeout_s: float = 10.0) -> httpx.AsyncClient:
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    if api_key:
        headers["X-API-Key"] = api_key
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout_s)


class OpenAQClient:
    def __init__(self, http: httpx.AsyncClient, max_attempts: int = 2, base_delay: float = 1.0) -> None:
        self._http = http
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    async def fetch_locations(
        self, country: str, limit: int = _DEFAULT_LIMIT, page: int = 1
    ) -> list[dict[str, Any]]:
        """Return one bounded page of monitoring locations for a country."""
        response = await request_with_retry(
            self._http,
            "GET",
            _LOCATIONS_PATH,
            source=SOURCE,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            params={
                "country": country,
                "limit": limit,
                "page": page,
                "order_by": "id",
                "sort": "asc",
            },
        )
        body = json_body(response, SOURCE)
        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise UpstreamFormatError(SOURCE, "response is missing 'results'")

        logger.info("OpenAQ locations fetched: country=%s count=%d", country, len(results))
        return results
