"""Factory functions for pipeline records."""

from typing import Any

from services.airquality.records import CityRecord, RawRecord, SourceTag


def make_raw(
    name: Any = "Warsaw",
    country: Any = "PL",
    pollution: Any = 42.0,
    source: SourceTag = SourceTag.LEGACY_API,
    **overrides: Any,
) -> RawRecord:
    return RawRecord(name=name, country=country, pollution=pollution, source=source, **overrides)


def make_city(
    name: str = "Warsaw",
    country: str = "PL",
    pollution: float = 42.0,
    source: SourceTag = SourceTag.LEGACY_API,
    **overrides: Any,
) -> CityRecord:
    base = {
        "raw_name": name,
        "canonical_name": name,
        "country": country,
        "pollution_value": pollution,
        "source": source,
    }
    base.update(overrides)
    return CityRecord(**base)
