"""
Enrichment engine — attach a short description to each CityRecord.

Records are processed in fixed-size batches: lookups inside a batch run
concurrently via asyncio.gather, and a short sleep separates batches so the
text service never sees more than batch_size requests at once.

Per record, title variants are tried in order until one yields text:
  "Kraków", "Kraków, Poland", "Kraków (Poland)", symbol-stripped name

Results (including "nothing found") are cached for 7 days per
(canonical name, country). Any failure for one record yields the fallback
description for that record only; enrich() never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Mapping, Optional, Sequence

from services.airquality.cache.namespaces import CacheNamespace
from services.airquality.cache.store import MISSING
from services.airquality.clients.wikipedia import WikipediaClient, title_variants
from services.airquality.errors import CatalogError
from services.airquality.records import FALLBACK_DESCRIPTION, CityRecord

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
BATCH_DELAY_S = 0.1


class EnrichmentEngine:
    def __init__(
        self,
        text_client: WikipediaClient,
        cache: CacheNamespace,
        country_names: Mapping[str, str],
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_S,
    ) -> None:
        self._client = text_client
        self._cache = cache
        self._country_names = country_names
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay

    async def enrich(self, records: Sequence[CityRecord]) -> list[CityRecord]:
        """Same length and order as the input, every record with a description."""
        enriched: list[CityRecord] = []
        for start in range(0, len(records), self.batch_size):
            if start:
                await asyncio.sleep(self.batch_delay)
            batch = records[start:start + self.batch_size]
            enriched.extend(await asyncio.gather(*(self._enrich_one(r) for r in batch)))

        logger.debug("Enriched %d records in %d batches", len(enriched), -(-len(records) // self.batch_size))
        return enriched

    async def _enrich_one(self, record: CityRecord) -> CityRecord:
        try:
            description = await self.describe(record.canonical_name, record.country)
        except Exception:
            # One record must never sink the batch
            logger.warning("Description lookup crashed for %r", record.canonical_name, exc_info=True)
            description = None
        return replace(record, description=description or FALLBACK_DESCRIPTION)

    async def describe(self, name: str, country: str) -> Optional[str]:
        """Cached description lookup. None when no variant found text."""
        cached = self._cache.get(name.lower(), country)
        if cached is not MISSING:
            return cached

        country_name = self._country_names.get(country, country)
        description = None
        for title in title_variants(name, country_name):
            try:
                description = await self._client.summary(title)
            except CatalogError as exc:
                logger.debug("Description variant %r failed: %s", title, exc)
                continue
            if description:
                break

        self._cache.set(name.lower(), country, value=description)
        return description
