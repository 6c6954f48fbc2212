"""
Historical measurement store reader.

Table: openaq_measurements (city, country, parameter, value, unit, date),
loaded by an offline import. One city has many rows: one per parameter per
day. The reader keeps the latest value per parameter and reduces each city
to one PM10-equivalent number:

  pm10 present          -> pm10
  only pm2.5 present    -> pm2.5 * pm25_factor (PM25_TO_PM10_FACTOR by default)
  neither               -> city is dropped
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from services.airquality.errors import UpstreamNetworkError

logger = logging.getLogger(__name__)

SOURCE = "historical_store"

# Typical urban PM2.5/PM10 mass ratio is ~0.4
PM25_TO_PM10_FACTOR = 2.5

_PM25_NAMES = ("pm25", "pm2_5", "pm2.5")

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

MEASUREMENTS_SQL = """
SELECT city, country, parameter, value, unit, date
FROM openaq_measurements
WHERE country = $1
ORDER BY city, date DESC
"""


def pm10_equivalent(
    latest: dict[str, float], factor: float = PM25_TO_PM10_FACTOR
) -> tuple[float, str] | None:
    """Pick (value, parameter) from the latest value per parameter."""
    if "pm10" in latest:
        return latest["pm10"], "pm10"
    for name in _PM25_NAMES:
        if name in latest:
            return round(latest[name] * factor, 2), name
    return None


class HistoricalStoreClient:
    def __init__(self, pool: Any, pm25_factor: float = PM25_TO_PM10_FACTOR) -> None:
        self._pool = pool
        self.pm25_factor = pm25_factor

    async def fetch_country(self, country: str) -> list[dict[str, Any]]:
        """One raw mapping per city with a usable PM value."""
        try:
            rows = await self._pool.fetch(MEASUREMENTS_SQL, country)
        except _DB_ERRORS as exc:
            raise UpstreamNetworkError(SOURCE, f"measurement query failed: {exc}") from exc

        latest_by_city: dict[str, dict[str, float]] = {}
        for row in rows:
            city = row["city"]
            value = row["value"]
            if not city or value is None:
                continue
            parameter = str(row["parameter"]).lower()
            # Rows arrive newest-first per city, so the first value seen wins
            latest_by_city.setdefault(city, {}).setdefault(parameter, float(value))

        results = []
        for city, latest in latest_by_city.items():
            picked = pm10_equivalent(latest, self.pm25_factor)
            if picked is None:
                continue
            value, parameter = picked
            results.append({"city": city, "country": country, "pollution": value, "parameter": parameter})

        logger.info(
            "Historical store read: country=%s rows=%d cities=%d",
            country, len(rows), len(results),
        )
        return results
