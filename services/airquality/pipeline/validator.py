"""
Record validator — turn RawRecords into CityRecords or a RejectReason.

Checks run in a fixed order and the first failure wins:

  1. presence          name, country and pollution all carried   -> missing_fields
  2. name shape        2..100 chars, not numeric/symbol-only     -> invalid_name
  3. canonicalization  top place candidate must be a city/region -> invalid_city_type
  4. country           must resolve to a supported code          -> invalid_country
  5. pollution         finite number within [0, 1000]            -> invalid_pollution

Canonicalization fails open: when the places lookup errors, the original
name is accepted unchanged and nothing is cached. Successful lookups
(including "no candidates") are cached for 24h under the lowercased name.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from services.airquality.cache.namespaces import CacheNamespace
from services.airquality.cache.store import MISSING
from services.airquality.clients.places import PlacesClient
from services.airquality.errors import CatalogError, LookupDegraded
from services.airquality.records import CityRecord, RawRecord, RejectReason, resolve_country

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MIN_POLLUTION = 0.0
MAX_POLLUTION = 1000.0

# Place types accepted as a city; establishments, POIs and sublocalities are not
CITY_PLACE_TYPES = frozenset({
    "locality",
    "postal_town",
    "administrative_area_level_1",
    "administrative_area_level_2",
    "administrative_area_level_3",
})

_NUMERIC_ONLY = re.compile(r"^\d+$")
_SYMBOLS_ONLY = re.compile(r"^[^a-zA-Z0-9\s]+$")


@dataclass(frozen=True)
class ValidationResult:
    record: Optional[CityRecord] = None
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class CanonicalName:
    """Cached outcome of one canonicalization lookup."""

    name: str
    is_city: bool


def is_plausible_name(name: str) -> bool:
    """Cheap shape check run before any external lookup."""
    cleaned = name.strip()
    if not (MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH):
        return False
    if _NUMERIC_ONLY.match(cleaned) or _SYMBOLS_ONLY.match(cleaned):
        return False
    return True


def pollution_value(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    if not math.isfinite(number) or not (MIN_POLLUTION <= number <= MAX_POLLUTION):
        return None
    return number


class RecordValidator:
    """
    Usage:
        validator = RecordValidator(places, caches.validation, settings.supported_countries)
        result = await validator.validate(raw)
        if result.accepted: ...
    """

    def __init__(
        self,
        places: PlacesClient,
        cache: CacheNamespace,
        supported_countries: Mapping[str, str],
    ) -> None:
        self._places = places
        self._cache = cache
        self._supported = supported_countries

    async def validate(self, raw: RawRecord) -> ValidationResult:
        if raw.name is None or raw.country is None or raw.pollution is None:
            return ValidationResult(reason=RejectReason.MISSING_FIELDS)

        if not isinstance(raw.name, str) or not is_plausible_name(raw.name):
            return ValidationResult(reason=RejectReason.INVALID_NAME)
        name = raw.name.strip()

        canonical = await self.canonicalize(name)
        if not canonical.is_city:
            return ValidationResult(reason=RejectReason.INVALID_CITY_TYPE)

        country = resolve_country(raw.country, self._supported)
        if country is None:
            return ValidationResult(reason=RejectReason.INVALID_COUNTRY)

        value = pollution_value(raw.pollution)
        if value is None:
            return ValidationResult(reason=RejectReason.INVALID_POLLUTION)

        return ValidationResult(
            record=CityRecord(
                raw_name=name,
                canonical_name=canonical.name,
                country=country,
                pollution_value=value,
                source=raw.source,
                coordinates=raw.coordinates,
                parameter=raw.parameter,
            )
        )

    async def validate_many(
        self, raws: Iterable[RawRecord]
    ) -> tuple[list[CityRecord], Counter[RejectReason]]:
        """Validate a batch, returning accepted records and rejection counts."""
        accepted: list[CityRecord] = []
        rejected: Counter[RejectReason] = Counter()
        for raw in raws:
            result = await self.validate(raw)
            if result.record is not None:
                accepted.append(result.record)
            elif result.reason is not None:
                rejected[result.reason] += 1

        if rejected:
            logger.info(
                "Validation: accepted=%d rejected=%d reasons=%s",
                len(accepted), sum(rejected.values()),
                {reason.value: count for reason, count in rejected.items()},
            )
        return accepted, rejected

    async def canonicalize(self, name: str) -> CanonicalName:
        """Resolve a name via the places lookup, failing open on any error."""
        if not self._places.enabled:
            return CanonicalName(name=name, is_city=True)

        cache_key = name.lower()
        cached = self._cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            result = await self._lookup(name)
        except LookupDegraded as exc:
            logger.warning("Canonicalization unavailable for %r, accepting as-is: %s", name, exc)
            return CanonicalName(name=name, is_city=True)

        self._cache.set(cache_key, value=result)
        return result

    async def _lookup(self, name: str) -> CanonicalName:
        try:
            candidates = await self._places.search(name)
        except CatalogError as exc:
            raise LookupDegraded(str(exc)) from exc

        if not candidates:
            return CanonicalName(name=name, is_city=True)

        top = candidates[0]
        if CITY_PLACE_TYPES.isdisjoint(top.types):
            logger.debug("Rejected %r: top candidate %r has types %s", name, top.name, top.types)
            return CanonicalName(name=top.name, is_city=False)
        if top.name != name:
            logger.debug("Canonicalized %r -> %r", name, top.name)
        return CanonicalName(name=top.name, is_city=True)
