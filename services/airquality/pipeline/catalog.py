"""
City catalog — the request surface the HTTP layer calls into.

list_cities() request flow:

  resolve country -> SourceSelector.fetch (validated + deduped)
    -> search filter -> blocked filter -> rank by pollution -> paginate
    -> enrich page items

Enrichment runs on the requested page only, so a listing costs at most
page_size description lookups regardless of how many cities matched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from services.airquality.cache.namespaces import CacheNamespaces
from services.airquality.cache.store import MISSING, TTLCache
from services.airquality.errors import InputError, PersistenceError
from services.airquality.history.store import HISTORY_WINDOW_DAYS, RETENTION_DAYS, HistoryPoint, HistoryStore
from services.airquality.pipeline.enrichment import EnrichmentEngine
from services.airquality.pipeline.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Page, paginate
from services.airquality.pipeline.sources import SourceSelector
from services.airquality.records import CityRecord, SourceTag, resolve_country
from services.airquality.reputation.store import FlagResult, ReputationEntry, ReputationStore, UnflagResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CityListing:
    page: Page[CityRecord]
    country: str
    source: Optional[SourceTag]

    @property
    def items(self) -> list[CityRecord]:
        return self.page.items

    @property
    def total_count(self) -> int:
        return self.page.total_count


def matches_search(record: CityRecord, term: str, country_name: str) -> bool:
    needle = term.strip().lower()
    return (
        needle in record.canonical_name.lower()
        or needle in record.raw_name.lower()
        or needle in country_name.lower()
    )


def rank_by_pollution(records: list[CityRecord]) -> list[CityRecord]:
    """Most polluted first; equal values ordered by name so pages are stable."""
    return sorted(records, key=lambda r: (-r.pollution_value, r.canonical_name.lower(), r.canonical_name))


class CityCatalog:
    def __init__(
        self,
        selector: SourceSelector,
        enricher: EnrichmentEngine,
        reputation: ReputationStore,
        history: HistoryStore,
        caches: CacheNamespaces,
        cache_store: TTLCache,
        supported_countries: Mapping[str, str],
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._selector = selector
        self._enricher = enricher
        self._reputation = reputation
        self._history = history
        self._caches = caches
        self._cache_store = cache_store
        self._supported = dict(supported_countries)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @property
    def source_tags(self) -> list[SourceTag]:
        return self._selector.source_tags

    # ------------------------------------------------------------------
    # Countries
    # ------------------------------------------------------------------

    def resolve_country(self, country: Any) -> str:
        code = resolve_country(country, self._supported)
        if code is None:
            raise InputError(
                f"Unsupported country: {country}. Supported countries: {', '.join(sorted(self._supported))}"
            )
        return code

    def country_name(self, code: str) -> str:
        code = code.strip().upper()
        cached = self._caches.country_names.get(code)
        if cached is not MISSING:
            return cached
        name = self._supported.get(code, code)
        self._caches.country_names.set(code, value=name)
        return name

    def list_countries(self) -> list[dict[str, str]]:
        countries = [{"code": code, "name": self.country_name(code)} for code in self._supported]
        return sorted(countries, key=lambda c: c["name"])

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_cities(
        self,
        country: Any,
        page: int = 1,
        page_size: Optional[int] = None,
        search: Optional[str] = None,
        include_blocked: bool = False,
    ) -> CityListing:
        code = self.resolve_country(country)
        size = self.default_page_size if page_size is None else page_size
        if page < 1 or size < 1:
            # Reject before spending any upstream calls
            raise InputError(f"Invalid pagination: page={page} page_size={size}")

        result = await self._selector.fetch(code)
        if result.source == SourceTag.HISTORICAL_STORE and not result.from_cache:
            await self._record_history(result.records)

        records = result.records
        if search and search.strip():
            country_name = self.country_name(code)
            records = [r for r in records if matches_search(r, search, country_name)]

        if not include_blocked:
            blocked = await self._reputation.blocked_names(code)
            if blocked:
                records = [
                    r for r in records
                    if r.canonical_name.lower() not in blocked and r.raw_name.lower() not in blocked
                ]

        sliced = paginate(rank_by_pollution(records), page, size, self.max_page_size)
        enriched = await self._enricher.enrich(sliced.items)
        page_result = Page(
            items=enriched,
            total_count=sliced.total_count,
            page=sliced.page,
            page_size=sliced.page_size,
        )

        logger.info(
            "Cities listed: country=%s source=%s total=%d page=%d items=%d",
            code, result.source.value if result.source else None,
            page_result.total_count, page, len(enriched),
        )
        return CityListing(page=page_result, country=code, source=result.source)

    async def _record_history(self, records: list[CityRecord]) -> None:
        try:
            await self._history.record(records)
        except PersistenceError:
            logger.warning("Could not record pollution history", exc_info=True)
            return
        self._caches.history.clear()

    # ------------------------------------------------------------------
    # Reputation
    # ------------------------------------------------------------------

    async def flag_city(self, city_name: str, country: Any) -> FlagResult:
        name = (city_name or "").strip()
        if not name:
            raise InputError("City name is required")
        code = self.resolve_country(country)
        result = await self._reputation.flag(name, code)
        if result.is_blocked:
            logger.warning("City blocked after repeated reports: city=%r country=%s", name, code)
        return result

    async def list_flagged(
        self, country: Any = None, blocked_only: bool = True
    ) -> list[ReputationEntry]:
        code = self.resolve_country(country) if country else None
        return await self._reputation.list_flagged(code, blocked_only=blocked_only)

    async def unflag_city(self, city_name: str, country: Any) -> UnflagResult:
        name = (city_name or "").strip()
        if not name:
            raise InputError("City name is required")
        return await self._reputation.unflag(name, self.resolve_country(country))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def city_history(self, city_name: str, country: Any) -> list[HistoryPoint]:
        code = self.resolve_country(country)
        key = city_name.strip().lower()
        cached = self._caches.history.get(key, code)
        if cached is not MISSING:
            return cached
        points = await self._history.recent(city_name, code, days=HISTORY_WINDOW_DAYS)
        self._caches.history.set(key, code, value=points)
        return points

    async def cleanup_history(self, retention_days: int = RETENTION_DAYS) -> int:
        deleted = await self._history.cleanup(retention_days)
        if deleted:
            self._caches.history.clear()
        return deleted

    # ------------------------------------------------------------------
    # Cache + stats
    # ------------------------------------------------------------------

    def invalidate_cache(self, scope: Optional[str] = None) -> dict[str, int]:
        cleared = self._caches.clear(scope)
        logger.info("Cache cleared: scope=%s evicted=%s", scope or "all", cleared)
        return cleared

    async def stats(self) -> dict[str, Any]:
        cache = self._cache_store.stats()
        reputation = await self._reputation.stats()
        return {
            "cache": {
                "hits": cache.hits,
                "misses": cache.misses,
                "keyCount": cache.key_count,
                "hitRate": cache.hit_rate,
            },
            "reputation": {
                "flaggedCount": reputation["flagged_count"],
                "blockedCount": reputation["blocked_count"],
            },
            "sources": [tag.value for tag in self.source_tags],
        }
