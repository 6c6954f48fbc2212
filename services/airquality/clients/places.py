"""
Google Places text search — canonical city name lookup.

POST /v1/places:searchText {"textQuery": "krakow"} returns ranked candidates:
  {"places": [{"displayName": {"text": "Kraków"}, "types": ["locality", "political"]}]}

Only the top candidate and its type tags matter to callers. The client is
disabled when no API key is configured; callers then skip canonicalization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from services.airquality.clients.http import USER_AGENT, json_body, request_with_retry
from services.airquality.errors import UpstreamFormatError

logger = logging.getLogger(__name__)

SOURCE = "google_places"
_SEARCH_PATH = "/v1/places:searchText"
_FIELD_MASK = "places.displayName,places.types"


@dataclass(frozen=True)
class PlaceCandidate:
    name: str
    types: tuple[str, ...]


def build_http_client(base_url: str, api_key: str, timeout_s: float = 5.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={
            "User-Agent": USER_AGENT,
            "X-Goog-Api-Key": api_key,
            "X-Goog-FieldMask": _FIELD_MASK,
        },
        timeout=timeout_s,
    )


class PlacesClient:
    def __init__(self, http: httpx.AsyncClient | None, enabled: bool = True) -> None:
        self._http = http
        self.enabled = enabled and http is not None

    async def search(self, name: str) -> list[PlaceCandidate]:
        """Ranked candidates for a free-text city name. Empty when nothing matched."""
        if not self.enabled:
            return []

        response = await request_with_retry(
            self._http,  # type: ignore[arg-type]
            "POST",
            _SEARCH_PATH,
            source=SOURCE,
            max_attempts=1,
            json={"textQuery": name},
        )
        body = json_body(response, SOURCE)
        if not isinstance(body, dict):
            raise UpstreamFormatError(SOURCE, "response is not an object")

        places = body.get("places") or []
        if not isinstance(places, list):
            raise UpstreamFormatError(SOURCE, "places is not a list")

        candidates = []
        for place in places:
            if not isinstance(place, dict):
                raise UpstreamFormatError(SOURCE, "place is not an object")
            display = place.get("displayName") or {}
            types = place.get("types") or []
            if not isinstance(display, dict) or not isinstance(types, list):
                raise UpstreamFormatError(SOURCE, "place has malformed displayName or types")
            name_text = display.get("text")
            if not isinstance(name_text, str) or not name_text:
                continue
            candidates.append(
                PlaceCandidate(name=name_text, types=tuple(t for t in types if isinstance(t, str)))
            )

        logger.debug("Places lookup: query=%r candidates=%d", name, len(candidates))
        return candidates
