"""
Wikipedia REST summary client.

GET {base}/{title} returns {"title": ..., "extract": "Warsaw is the capital..."}.
A 404 means "no such page" and is returned as None rather than raised, so
callers can move on to the next title variant. Other failures propagate.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

import httpx

from services.airquality.clients.http import USER_AGENT, json_body, request_with_retry
from services.airquality.errors import UpstreamHTTPError

logger = logging.getLogger(__name__)

SOURCE = "wikipedia"
MAX_DESCRIPTION_LENGTH = 300

_WHITESPACE_RE = re.compile(r"\s+")
_SYMBOL_RE = re.compile(r"[^\w\s\-\.]")


def clean_description(extract: object) -> Optional[str]:
    """Collapse whitespace and cap at 300 characters (297 + '...')."""
    if not isinstance(extract, str):
        return None
    cleaned = _WHITESPACE_RE.sub(" ", extract).strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_DESCRIPTION_LENGTH:
        cleaned = cleaned[: MAX_DESCRIPTION_LENGTH - 3] + "..."
    return cleaned


def strip_symbols(name: str) -> str:
    return _WHITESPACE_RE.sub(" ", _SYMBOL_RE.sub("", name)).strip()


def title_variants(name: str, country_name: str) -> list[str]:
    """Titles to try in order, duplicates and blanks removed."""
    variants = [
        name,
        f"{name}, {country_name}",
        f"{name} ({country_name})",
        strip_symbols(name),
    ]
    seen: set[str] = set()
    ordered = []
    for title in variants:
        if title and title not in seen:
            seen.add(title)
            ordered.append(title)
    return ordered


def build_http_client(base_url: str, timeout_s: float = 8.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/") + "/",
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        timeout=timeout_s,
    )


class WikipediaClient:
    def __init__(self, http: httpx.AsyncClient, max_attempts: int = 2, base_delay: float = 1.0) -> None:
        self._http = http
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    async def summary(self, title: str) -> Optional[str]:
        """Cleaned summary extract for one page title, or None when there is no page."""
        try:
            response = await request_with_retry(
                self._http,
                "GET",
                quote(title.replace(" ", "_"), safe=""),
                source=SOURCE,
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
            )
        except UpstreamHTTPError as exc:
            if exc.status_code == 404:
                logger.debug("Wikipedia page not found: %r", title)
                return None
            raise

        body = json_body(response, SOURCE)
        if not isinstance(body, dict):
            return None
        return clean_description(body.get("extract"))
