"""
Record types shared by every pipeline stage.

Upstream providers disagree on field names (``city`` / ``name`` / ``cityName``,
``aqi`` / ``pollution`` / ``airQualityIndex``). RawRecord.from_mapping() is the
only place those aliases are known; everything downstream reads the canonical
attributes.

AQI breakpoints (display only, never used for gating):

    level                 PM10     PM2.5
    good                  <= 50    <= 12
    moderate              <= 100   <= 35.4
    unhealthy-sensitive   <= 150   <= 55.4
    unhealthy             <= 200   <= 150.4
    very-unhealthy        <= 300   <= 250.4
    hazardous             above    above
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

NAME_ALIASES = ("city", "name", "cityName")
POLLUTION_ALIASES = ("aqi", "pollution", "airQualityIndex")
COUNTRY_ALIASES = ("country", "countryCode")

FALLBACK_DESCRIPTION = "No description available"


class SourceTag(str, Enum):
    HISTORICAL_STORE = "historical_store"
    LIVE_API = "live_api"
    LEGACY_API = "legacy_api"


class RejectReason(str, Enum):
    MISSING_FIELDS = "missing_fields"
    INVALID_NAME = "invalid_name"
    INVALID_CITY_TYPE = "invalid_city_type"
    INVALID_COUNTRY = "invalid_country"
    INVALID_POLLUTION = "invalid_pollution"


_PM10_BREAKPOINTS = (
    (50, "good"),
    (100, "moderate"),
    (150, "unhealthy-sensitive"),
    (200, "unhealthy"),
    (300, "very-unhealthy"),
)
_PM25_BREAKPOINTS = (
    (12, "good"),
    (35.4, "moderate"),
    (55.4, "unhealthy-sensitive"),
    (150.4, "unhealthy"),
    (250.4, "very-unhealthy"),
)


def classify_aqi(value: float, parameter: str = "pm10") -> str:
    """Bucket a concentration into an AQI level using the PM10 or PM2.5 table."""
    table = _PM25_BREAKPOINTS if parameter in ("pm25", "pm2_5", "pm2.5") else _PM10_BREAKPOINTS
    for upper, level in table:
        if value <= upper:
            return level
    return "hazardous"


def resolve_country(value: Any, supported: Mapping[str, str]) -> Optional[str]:
    """Map a country code or display name onto a supported ISO code.

    'pl' -> 'PL', 'Poland' -> 'PL', 'Narnia' -> None
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    code = cleaned.upper()
    if code in supported:
        return code
    lowered = cleaned.lower()
    for supported_code, name in supported.items():
        if name.lower() == lowered:
            return supported_code
    return None


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RawRecord:
    """One upstream row after alias normalization, before validation."""

    name: Any
    country: Any
    pollution: Any
    source: SourceTag
    coordinates: Optional[Coordinates] = None
    parameter: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: SourceTag) -> "RawRecord":
        return cls(
            name=_first_present(data, NAME_ALIASES),
            country=_first_present(data, COUNTRY_ALIASES),
            pollution=_first_present(data, POLLUTION_ALIASES),
            source=source,
            coordinates=_coordinates(data),
            parameter=data.get("parameter"),
        )


@dataclass(frozen=True)
class CityRecord:
    raw_name: str
    canonical_name: str
    country: str
    pollution_value: float
    source: SourceTag
    coordinates: Optional[Coordinates] = None
    parameter: Optional[str] = None
    description: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.canonical_name.lower()}_{self.country}"

    @property
    def aqi_level(self) -> str:
        # Always the PM10 table: historical values are PM10-equivalent, while
        # live defaults and legacy indices are only approximated on this scale
        return classify_aqi(self.pollution_value, "pm10")


def _first_present(data: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    for alias in aliases:
        value = data.get(alias)
        if value is not None:
            return value
    return None


def _coordinates(data: Mapping[str, Any]) -> Optional[Coordinates]:
    coords = data.get("coordinates")
    if isinstance(coords, Mapping):
        lat, lon = coords.get("latitude"), coords.get("longitude")
    else:
        lat, lon = data.get("lat"), data.get("lon")
    if isinstance(lat, (int, float)) and isinstance(lon, (int, float)):
        return Coordinates(latitude=float(lat), longitude=float(lon))
    return None
