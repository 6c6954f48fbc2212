"""
Tests for record normalization, AQI classification and country resolution.
"""

from __future__ import annotations

import pytest

from services.airquality.config import Settings
from services.airquality.records import (
    Coordinates,
    RawRecord,
    SourceTag,
    classify_aqi,
    resolve_country,
)
from services.airquality.tests.helpers.factories import make_city

SUPPORTED = Settings().supported_countries


class TestFromMapping:
    @pytest.mark.parametrize("data", [
        {"city": "Warsaw", "country": "PL", "aqi": 10},
        {"name": "Warsaw", "countryCode": "PL", "pollution": 10},
        {"cityName": "Warsaw", "country": "PL", "airQualityIndex": 10},
    ])
    def test_aliases_normalized(self, data):
        raw = RawRecord.from_mapping(data, SourceTag.LEGACY_API)
        assert (raw.name, raw.country, raw.pollution) == ("Warsaw", "PL", 10)

    def test_first_non_null_alias_wins(self):
        raw = RawRecord.from_mapping({"city": None, "name": "Lodz", "country": "PL", "aqi": 1}, SourceTag.LIVE_API)
        assert raw.name == "Lodz"

    def test_missing_fields_stay_none(self):
        raw = RawRecord.from_mapping({"name": "Lodz"}, SourceTag.LIVE_API)
        assert raw.country is None
        assert raw.pollution is None

    def test_coordinates_from_nested_or_flat(self):
        nested = RawRecord.from_mapping({"coordinates": {"latitude": 52.2, "longitude": 21}}, SourceTag.LIVE_API)
        flat = RawRecord.from_mapping({"lat": 52.2, "lon": 21.0}, SourceTag.LIVE_API)
        assert nested.coordinates == flat.coordinates == Coordinates(52.2, 21.0)

    def test_bad_coordinates_ignored(self):
        raw = RawRecord.from_mapping({"coordinates": {"latitude": "x"}}, SourceTag.LIVE_API)
        assert raw.coordinates is None


class TestClassifyAqi:
    @pytest.mark.parametrize("value,level", [
        (0, "good"), (50, "good"), (50.1, "moderate"), (100, "moderate"),
        (150, "unhealthy-sensitive"), (200, "unhealthy"), (300, "very-unhealthy"), (301, "hazardous"),
    ])
    def test_pm10_table(self, value, level):
        assert classify_aqi(value) == level

    @pytest.mark.parametrize("value,level", [
        (12, "good"), (35.4, "moderate"), (55.4, "unhealthy-sensitive"),
        (150.4, "unhealthy"), (250.4, "very-unhealthy"), (250.5, "hazardous"),
    ])
    def test_pm25_table(self, value, level):
        assert classify_aqi(value, "pm25") == level


class TestResolveCountry:
    @pytest.mark.parametrize("value", ["PL", "pl", " Poland ", "POLAND"])
    def test_supported(self, value):
        assert resolve_country(value, SUPPORTED) == "PL"

    @pytest.mark.parametrize("value", ["IT", "Italy", "", None, 48])
    def test_unsupported(self, value):
        assert resolve_country(value, SUPPORTED) is None


def test_dedup_key_and_level():
    city = make_city("Warsaw", pollution=160)
    assert city.dedup_key == "warsaw_PL"
    assert city.aqi_level == "unhealthy"
