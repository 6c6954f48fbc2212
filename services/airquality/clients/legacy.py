"""
Legacy pollution API client (the original mock provider).

Auth lifecycle:
  POST /auth/login    {username, password} -> {token, refreshToken, expiresIn}
  POST /auth/refresh  {refreshToken}       -> {token, refreshToken?, expiresIn}

Tokens are refreshed when expired; a failed refresh falls back to a fresh
login. A 401 on a data call drops the token and retries the call once.

Data:
  GET /pollution?country=PL&page=N&limit=100
    -> {"results": [{"name": "Warsaw", "pollution": 52.1}, ...],
        "meta": {"page": N, "totalPages": M}}

fetch_country() walks every page and tags rows with the requested country.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from services.airquality.clients.http import USER_AGENT, json_body, request_with_retry
from services.airquality.errors import UpstreamFormatError, UpstreamHTTPError

logger = logging.getLogger(__name__)

SOURCE = "legacy_api"
_PAGE_LIMIT = 100
# Refuse to walk more pages than this even if meta.totalPages says otherwise
_MAX_PAGES = 200


def build_http_client(base_url: str, timeout_s: float = 10.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"User-Agent": USER_AGENT, "Content-Type": "application/json"},
        timeout=timeout_s,
    )


class LegacyApiClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        username: str,
        password: str,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http
        self._username = username
        self._password = password
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._clock = clock

        self._token: str | None = None
        self._refresh_token: str | None = None
        self._expires_at: float = 0.0
        self._auth_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _token_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    def _store_tokens(self, payload: Any) -> None:
        if not isinstance(payload, dict) or not payload.get("token"):
            raise UpstreamFormatError(SOURCE, "auth response is missing token")
        try:
            expires_in = float(payload.get("expiresIn", 3600))
        except (TypeError, ValueError) as exc:
            raise UpstreamFormatError(
                SOURCE, f"auth response has invalid expiresIn: {payload.get('expiresIn')!r}"
            ) from exc
        self._token = payload["token"]
        self._refresh_token = payload.get("refreshToken") or self._refresh_token
        self._expires_at = self._clock() + expires_in

    def clear_auth(self) -> None:
        self._token = None
        self._refresh_token = None
        self._expires_at = 0.0

    async def _login(self) -> None:
        logger.info("Authenticating with legacy pollution API")
        response = await request_with_retry(
            self._http, "POST", "/auth/login",
            source=SOURCE, max_attempts=1,
            json={"username": self._username, "password": self._password},
        )
        self._store_tokens(json_body(response, SOURCE))

    async def _refresh(self) -> None:
        logger.info("Refreshing legacy API token")
        response = await request_with_retry(
            self._http, "POST", "/auth/refresh",
            source=SOURCE, max_attempts=1,
            json={"refreshToken": self._refresh_token},
        )
        self._store_tokens(json_body(response, SOURCE))

    async def ensure_authenticated(self) -> str:
        async with self._auth_lock:
            if self._token_valid():
                return self._token  # type: ignore[return-value]
            if self._refresh_token:
                try:
                    await self._refresh()
                    return self._token  # type: ignore[return-value]
                except (UpstreamHTTPError, UpstreamFormatError) as exc:
                    logger.warning("Token refresh failed, re-authenticating: %s", exc)
                    self.clear_auth()
            await self._login()
            return self._token  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def _get_page(self, country: str, page: int) -> dict[str, Any]:
        params = {"country": country, "page": page, "limit": _PAGE_LIMIT}
        for reauth in (False, True):
            token = await self.ensure_authenticated()
            try:
                response = await request_with_retry(
                    self._http, "GET", "/pollution",
                    source=SOURCE,
                    max_attempts=self._max_attempts,
                    base_delay=self._base_delay,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except UpstreamHTTPError as exc:
                if exc.status_code == 401 and not reauth:
                    logger.warning("Legacy API rejected token, re-authenticating")
                    self.clear_auth()
                    continue
                raise
            body = json_body(response, SOURCE)
            if not isinstance(body, dict) or not isinstance(body.get("results"), list):
                raise UpstreamFormatError(SOURCE, f"page {page} for {country} is missing 'results'")
            return body
        raise UpstreamHTTPError(SOURCE, 401, "authentication rejected twice")

    async def fetch_country(self, country: str) -> list[dict[str, Any]]:
        """Fetch every record for a country across all pages."""
        rows: list[dict[str, Any]] = []
        page = 1
        while page <= _MAX_PAGES:
            body = await self._get_page(country, page)
            rows.extend({**item, "country": country} for item in body["results"] if isinstance(item, dict))

            meta = body.get("meta") or {}
            total_pages = meta.get("totalPages") if isinstance(meta, dict) else None
            logger.debug(
                "Legacy API page fetched: country=%s page=%d/%s rows_so_far=%d",
                country, page, total_pages or 1, len(rows),
            )
            if not isinstance(total_pages, int) or page >= total_pages:
                break
            page += 1

        logger.info("Legacy API fetch complete: country=%s rows=%d", country, len(rows))
        return rows
