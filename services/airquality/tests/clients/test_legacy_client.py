"""
Tests for LegacyApiClient: auth lifecycle and paginated country scans.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from services.airquality.clients.legacy import LegacyApiClient
from services.airquality.errors import UpstreamFormatError, UpstreamHTTPError


class FakeLegacyApi:
    """In-memory legacy API: login/refresh issue numbered tokens, /pollution pages results."""

    def __init__(self, pages: list[list[dict]], expires_in: Any = 3600) -> None:
        self.pages = pages
        self.expires_in = expires_in
        self.logins = 0
        self.refreshes = 0
        self.valid_tokens: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.fail_refresh = False

    def _issue(self) -> dict:
        token = f"t{self.logins + self.refreshes}"
        self.valid_tokens.add(token)
        return {"token": token, "refreshToken": f"r-{token}", "expiresIn": self.expires_in}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/login":
            body = json.loads(request.content)
            if body != {"username": "testuser", "password": "testpass"}:
                return httpx.Response(401)
            self.logins += 1
            return httpx.Response(200, json=self._issue())
        if request.url.path == "/auth/refresh":
            if self.fail_refresh:
                return httpx.Response(401)
            self.refreshes += 1
            return httpx.Response(200, json=self._issue())
        if request.url.path == "/pollution":
            token = request.headers.get("authorization", "").removeprefix("Bearer ")
            if token not in self.valid_tokens:
                return httpx.Response(401)
            page = int(request.url.params["page"])
            return httpx.Response(200, json={
                "results": self.pages[page - 1],
                "meta": {"page": page, "totalPages": len(self.pages)},
            })
        return httpx.Response(404)


def _legacy(api: FakeLegacyApi, clock=None) -> LegacyApiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(api), base_url="https://legacy.test")
    kwargs = {"clock": clock} if clock else {}
    return LegacyApiClient(http, "testuser", "testpass", max_attempts=1, base_delay=0, **kwargs)


@pytest.mark.asyncio
async def test_fetch_country_walks_all_pages_and_tags_country():
    api = FakeLegacyApi([
        [{"name": "Warsaw", "pollution": 52.1}],
        [{"city": "Krakow", "aqi": 80}],
    ])
    rows = await _legacy(api).fetch_country("PL")

    assert rows == [
        {"name": "Warsaw", "pollution": 52.1, "country": "PL"},
        {"city": "Krakow", "aqi": 80, "country": "PL"},
    ]
    assert api.logins == 1
    pollution_calls = [r for r in api.requests if r.url.path == "/pollution"]
    assert [r.url.params["limit"] for r in pollution_calls] == ["100", "100"]


@pytest.mark.asyncio
async def test_token_reused_while_valid():
    api = FakeLegacyApi([[{"name": "Warsaw", "pollution": 1}]])
    client = _legacy(api)
    await client.fetch_country("PL")
    await client.fetch_country("PL")
    assert api.logins == 1
    assert api.refreshes == 0


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(clock):
    api = FakeLegacyApi([[{"name": "Warsaw", "pollution": 1}]], expires_in=60)
    client = _legacy(api, clock)
    await client.fetch_country("PL")
    clock.advance(61)
    await client.fetch_country("PL")
    assert api.logins == 1
    assert api.refreshes == 1


@pytest.mark.asyncio
async def test_failed_refresh_falls_back_to_login(clock):
    api = FakeLegacyApi([[{"name": "Warsaw", "pollution": 1}]], expires_in=60)
    client = _legacy(api, clock)
    await client.fetch_country("PL")
    clock.advance(61)
    api.fail_refresh = True
    await client.fetch_country("PL")
    assert api.logins == 2


@pytest.mark.asyncio
async def test_rejected_token_forces_one_reauth():
    api = FakeLegacyApi([[{"name": "Warsaw", "pollution": 1}]])
    client = _legacy(api)
    await client.fetch_country("PL")
    api.valid_tokens.clear()  # server-side revocation

    rows = await client.fetch_country("PL")

    assert len(rows) == 1
    assert api.logins == 2


@pytest.mark.asyncio
async def test_bad_credentials_raise():
    api = FakeLegacyApi([[]])
    http = httpx.AsyncClient(transport=httpx.MockTransport(api), base_url="https://legacy.test")
    client = LegacyApiClient(http, "testuser", "wrong", max_attempts=1, base_delay=0)
    with pytest.raises(UpstreamHTTPError) as exc_info:
        await client.fetch_country("PL")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("expires_in", [None, "soon"])
async def test_unusable_expiry_is_a_format_error(expires_in):
    api = FakeLegacyApi([[{"name": "Warsaw", "pollution": 1}]], expires_in=expires_in)
    with pytest.raises(UpstreamFormatError):
        await _legacy(api).fetch_country("PL")
    assert api.logins == 1


@pytest.mark.asyncio
async def test_non_object_meta_stops_after_first_page():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"token": "t0", "expiresIn": 3600})
        return httpx.Response(200, json={"results": [{"name": "Warsaw", "pollution": 1}], "meta": "n/a"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://legacy.test")
    rows = await LegacyApiClient(http, "testuser", "testpass", max_attempts=1, base_delay=0).fetch_country("PL")
    assert rows == [{"name": "Warsaw", "pollution": 1, "country": "PL"}]
