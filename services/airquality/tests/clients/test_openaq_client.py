"""
Tests for OpenAQClient request shape and response handling.
"""

from __future__ import annotations

import httpx
import pytest

from services.airquality.clients.openaq import OpenAQClient, build_http_client
from services.airquality.errors import UpstreamFormatError, UpstreamHTTPError


def _client(handler, headers=None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.openaq.org", headers=headers
    )


@pytest.mark.asyncio
async def test_fetch_locations_sends_bounded_query():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"meta": {"found": 1}, "results": [{"id": 1, "name": "Warszawa"}]})

    async with _client(handler) as http:
        results = await OpenAQClient(http, base_delay=0).fetch_locations("PL")

    assert results == [{"id": 1, "name": "Warszawa"}]
    request = seen[0]
    assert request.url.path == "/v3/locations"
    assert request.url.params["country"] == "PL"
    assert request.url.params["limit"] == "1000"
    assert request.url.params["page"] == "1"


@pytest.mark.asyncio
async def test_missing_results_is_format_error():
    async with _client(lambda r: httpx.Response(200, json={"meta": {}})) as http:
        with pytest.raises(UpstreamFormatError):
            await OpenAQClient(http, base_delay=0).fetch_locations("PL")


@pytest.mark.asyncio
async def test_unauthorized_is_http_error():
    async with _client(lambda r: httpx.Response(401, json={"detail": "bad key"})) as http:
        with pytest.raises(UpstreamHTTPError) as exc_info:
            await OpenAQClient(http, base_delay=0).fetch_locations("PL")
    assert exc_info.value.status_code == 401


def test_api_key_header_only_when_configured():
    with_key = build_http_client("https://api.openaq.org", api_key="secret")
    without_key = build_http_client("https://api.openaq.org")
    assert with_key.headers["X-API-Key"] == "secret"
    assert "X-API-Key" not in without_key.headers
