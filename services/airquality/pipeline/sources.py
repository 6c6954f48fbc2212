"""
Source selector — ordered fallback across the three data sources.

Priority:
  1. historical_store   PostgreSQL measurements, latest value per parameter
  2. live_api           OpenAQ v3 locations, parameter-default values
  3. legacy_api         authenticated paginated scan

Every source's rows go through the same pipeline (alias normalization,
validation, dedup). The selector commits to the first source that yields at
least one valid record and never merges across sources. Every computed
result is cached per (source, country) for an hour; a cached empty result
means "skip this source" until it expires.

A source that raises is logged and skipped. UpstreamUnavailable is raised
only when every source raised; sources that merely returned nothing give an
empty result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from services.airquality.cache.namespaces import CacheNamespace
from services.airquality.cache.store import MISSING
from services.airquality.clients.historical import HistoricalStoreClient
from services.airquality.clients.legacy import LegacyApiClient
from services.airquality.clients.openaq import SOURCE as OPENAQ_SOURCE
from services.airquality.clients.openaq import OpenAQClient
from services.airquality.errors import CatalogError, UpstreamFormatError, UpstreamUnavailable
from services.airquality.pipeline.dedup import dedupe
from services.airquality.pipeline.validator import RecordValidator
from services.airquality.records import CityRecord, RawRecord, SourceTag

logger = logging.getLogger(__name__)

# Approximate concentrations used when a live location only reports which
# parameter it measures, not a current value.
DEFAULT_PARAMETER_VALUES: dict[str, float] = {
    "pm25": 15,
    "pm10": 35,
    "o3": 45,
    "no2": 25,
    "so2": 5,
    "co": 0.5,
}
DEFAULT_POLLUTION_VALUE = 20.0

FetchFn = Callable[[str], Awaitable[list[dict[str, Any]]]]


@dataclass(frozen=True)
class DataSource:
    tag: SourceTag
    fetch: FetchFn


@dataclass(frozen=True)
class SourceResult:
    records: list[CityRecord]
    source: Optional[SourceTag]
    from_cache: bool = False
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# Live API transform
# ---------------------------------------------------------------------------

def location_city(location: Mapping[str, Any]) -> Optional[str]:
    """City for an OpenAQ location: locality, else the part after ' - ', else the name."""
    locality = location.get("locality")
    if isinstance(locality, str) and locality.strip():
        return locality.strip()
    name = location.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    parts = name.split(" - ")
    return (parts[1] if len(parts) > 1 else name).strip() or None


def locations_to_rows(
    locations: Sequence[Mapping[str, Any]],
    country: str,
    defaults: Mapping[str, float] = DEFAULT_PARAMETER_VALUES,
    fallback: float = DEFAULT_POLLUTION_VALUE,
) -> list[dict[str, Any]]:
    """One raw row per city, taken from its first location that has sensors.

    Raises UpstreamFormatError when a location, sensor or parameter is not an
    object, so the selector falls through to the next source.
    """
    rows: dict[str, dict[str, Any]] = {}
    for location in locations:
        if not isinstance(location, Mapping):
            raise UpstreamFormatError(OPENAQ_SOURCE, "location is not an object")
        city = location_city(location)
        sensors = location.get("sensors") or []
        if not isinstance(sensors, list):
            raise UpstreamFormatError(OPENAQ_SOURCE, "location sensors is not a list")
        if not city or city in rows or not sensors:
            continue
        sensor = sensors[0] or {}
        if not isinstance(sensor, Mapping):
            raise UpstreamFormatError(OPENAQ_SOURCE, "sensor is not an object")
        param = sensor.get("parameter") or {}
        if not isinstance(param, Mapping):
            raise UpstreamFormatError(OPENAQ_SOURCE, "sensor parameter is not an object")
        parameter = param.get("name")
        if not isinstance(parameter, str):
            parameter = None
        rows[city] = {
            "city": city,
            "country": country,
            "pollution": defaults.get(parameter, fallback),
            "parameter": parameter,
            "coordinates": location.get("coordinates"),
        }
    return list(rows.values())


def default_sources(
    historical: HistoricalStoreClient | None,
    live: OpenAQClient | None,
    legacy: LegacyApiClient | None,
) -> list[DataSource]:
    """Wire the clients into priority order, skipping any that are disabled."""
    sources = []
    if historical is not None:
        sources.append(DataSource(SourceTag.HISTORICAL_STORE, historical.fetch_country))
    if live is not None:
        async def fetch_live(country: str) -> list[dict[str, Any]]:
            return locations_to_rows(await live.fetch_locations(country), country)

        sources.append(DataSource(SourceTag.LIVE_API, fetch_live))
    if legacy is not None:
        sources.append(DataSource(SourceTag.LEGACY_API, legacy.fetch_country))
    return sources


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class SourceSelector:
    def __init__(
        self,
        sources: Sequence[DataSource],
        validator: RecordValidator,
        cache: CacheNamespace,
    ) -> None:
        self._sources = list(sources)
        self._validator = validator
        self._cache = cache

    @property
    def source_tags(self) -> list[SourceTag]:
        return [s.tag for s in self._sources]

    async def fetch(self, country: str) -> SourceResult:
        """Validated, deduplicated records for a country from the first productive source."""
        failures: list[tuple[str, str]] = []

        for source in self._sources:
            cached = self._cache.get(source.tag.value, country)
            if cached is not MISSING:
                logger.debug("Source cache hit: source=%s country=%s", source.tag.value, country)
                if not cached:
                    continue
                return SourceResult(records=list(cached), source=source.tag, from_cache=True, failures=failures)

            try:
                rows = await source.fetch(country)
            except CatalogError as exc:
                logger.warning("Source %s failed for %s: %s", source.tag.value, country, exc)
                failures.append((source.tag.value, str(exc)))
                continue

            raws = [RawRecord.from_mapping(row, source.tag) for row in rows if isinstance(row, Mapping)]
            accepted, _ = await self._validator.validate_many(raws)
            records = dedupe(accepted)
            self._cache.set(source.tag.value, country, value=records)
            if not records:
                logger.info("Source %s returned no valid records for %s", source.tag.value, country)
                continue

            logger.info(
                "Source committed: source=%s country=%s raw=%d valid=%d unique=%d",
                source.tag.value, country, len(raws), len(accepted), len(records),
            )
            return SourceResult(records=records, source=source.tag, failures=failures)

        if self._sources and len(failures) == len(self._sources):
            raise UpstreamUnavailable(country, failures)

        logger.warning("No source produced records for %s", country)
        return SourceResult(records=[], source=None, failures=failures)
