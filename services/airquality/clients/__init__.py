"""Upstream clients. Each takes an injected httpx.AsyncClient or asyncpg pool."""

from services.airquality.clients.historical import HistoricalStoreClient
from services.airquality.clients.legacy import LegacyApiClient
from services.airquality.clients.openaq import OpenAQClient
from services.airquality.clients.places import PlaceCandidate, PlacesClient
from services.airquality.clients.wikipedia import WikipediaClient

__all__ = [
    "HistoricalStoreClient",
    "LegacyApiClient",
    "OpenAQClient",
    "PlaceCandidate",
    "PlacesClient",
    "WikipediaClient",
]
