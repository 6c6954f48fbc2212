"""
Deduplicator — one CityRecord per (canonical name, country).

Pollution-maximizing: when two records share a key the strictly more
polluted one wins and ties keep the first seen, so a city never drops off a
"most polluted" listing because a cleaner duplicate arrived first. Output
order is the order in which each key was first seen.
"""

from __future__ import annotations

from typing import Callable, Iterable

from services.airquality.records import CityRecord

# prefer(incumbent, challenger) -> True when the challenger should replace it
PreferPolicy = Callable[[CityRecord, CityRecord], bool]


def higher_pollution(incumbent: CityRecord, challenger: CityRecord) -> bool:
    return challenger.pollution_value > incumbent.pollution_value


def dedupe(records: Iterable[CityRecord], prefer: PreferPolicy = higher_pollution) -> list[CityRecord]:
    kept: dict[str, CityRecord] = {}
    for record in records:
        key = record.dedup_key
        incumbent = kept.get(key)
        if incumbent is None or prefer(incumbent, record):
            # Reassigning an existing key keeps its original insertion slot
            kept[key] = record
    return list(kept.values())
