"""
Pollution history — one value per (city, country, day).

Written by the catalog whenever the historical store source commits a
result, read back as a 7-day series for the city history view. Rows older
than 30 days are removed by cleanup().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

import asyncpg

from services.airquality.errors import PersistenceError
from services.airquality.records import CityRecord

logger = logging.getLogger(__name__)

HISTORY_WINDOW_DAYS = 7
RETENTION_DAYS = 30

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)
_READ_ERRORS = _DB_ERRORS + (PersistenceError,)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS pollution_history (
    id           SERIAL PRIMARY KEY,
    city_key     TEXT NOT NULL,
    city_name    TEXT NOT NULL,
    country_code VARCHAR(10) NOT NULL,
    date         DATE NOT NULL,
    aqi_value    DOUBLE PRECISION NOT NULL,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (city_key, country_code, date)
)
"""

UPSERT_SQL = """
INSERT INTO pollution_history (city_key, city_name, country_code, date, aqi_value)
VALUES ($1, $2, $3, $4, $5)
ON CONFLICT (city_key, country_code, date) DO UPDATE
SET aqi_value  = EXCLUDED.aqi_value,
    created_at = NOW()
"""

RECENT_SQL = """
SELECT date, aqi_value
FROM pollution_history
WHERE city_key = $1 AND country_code = $2
  AND date >= CURRENT_DATE - $3::int
ORDER BY date ASC
"""

CLEANUP_SQL = """
DELETE FROM pollution_history
WHERE date < CURRENT_DATE - $1::int
"""


@dataclass(frozen=True)
class HistoryPoint:
    date: date
    aqi_value: float


class HistoryStore:
    def __init__(self, pool: Any) -> None:
        self._pool = pool

    def _conn(self) -> Any:
        if self._pool is None:
            raise PersistenceError("Database is not connected")
        return self._pool

    async def ensure_schema(self) -> None:
        try:
            await self._conn().execute(CREATE_TABLE_SQL)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Could not create pollution_history table: {exc}") from exc

    async def record(self, records: Iterable[CityRecord], day: date | None = None) -> int:
        day = day or date.today()
        rows = [
            (r.canonical_name.lower(), r.canonical_name, r.country, day, float(r.pollution_value))
            for r in records
        ]
        if not rows:
            return 0
        try:
            await self._conn().executemany(UPSERT_SQL, rows)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Failed to record pollution history: {exc}") from exc
        logger.info("Pollution history recorded: rows=%d day=%s", len(rows), day.isoformat())
        return len(rows)

    async def recent(
        self, city_name: str, country_code: str, days: int = HISTORY_WINDOW_DAYS
    ) -> list[HistoryPoint]:
        try:
            rows = await self._conn().fetch(
                RECENT_SQL, city_name.strip().lower(), country_code.strip().upper(), days
            )
        except _READ_ERRORS:
            logger.warning("History lookup failed for city=%r country=%s", city_name, country_code, exc_info=True)
            return []
        return [HistoryPoint(date=row["date"], aqi_value=float(row["aqi_value"])) for row in rows]

    async def cleanup(self, retention_days: int = RETENTION_DAYS) -> int:
        try:
            status = await self._conn().execute(CLEANUP_SQL, retention_days)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Failed to clean up pollution history: {exc}") from exc
        try:
            deleted = int(str(status).rsplit(" ", 1)[-1])
        except ValueError:
            deleted = 0
        if deleted:
            logger.info("Cleaned up old pollution history: deleted=%d", deleted)
        return deleted
