"""
Reputation store — durable invalid-report counters per (city, country).

Table: invalid_cities
  city_key        lower(trimmed city name), half of the natural key
  city_name       name as first reported (display)
  country_code    upper-case ISO code, other half of the natural key
  invalid_count   >= 1, bumped by a single atomic upsert
  first_marked_at / last_marked_at

A pair is blocked once invalid_count reaches BLOCK_THRESHOLD. unflag()
deletes the row outright, so a later flag starts again at 1.

Failure policy:
  - writes (flag, unflag) raise PersistenceError
  - reads (is_blocked, list_flagged, blocked_names, stats) log and fail safe
    with False / empty results so listings never stall on the store
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import asyncpg

from services.airquality.errors import PersistenceError

logger = logging.getLogger(__name__)

BLOCK_THRESHOLD = 3

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)
_READ_ERRORS = _DB_ERRORS + (PersistenceError,)


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS invalid_cities (
    id              SERIAL PRIMARY KEY,
    city_key        TEXT NOT NULL,
    city_name       TEXT NOT NULL,
    country_code    VARCHAR(10) NOT NULL,
    invalid_count   INTEGER NOT NULL DEFAULT 1,
    first_marked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_marked_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (city_key, country_code)
)
"""

FLAG_SQL = """
INSERT INTO invalid_cities (city_key, city_name, country_code, invalid_count, first_marked_at, last_marked_at)
VALUES ($1, $2, $3, 1, NOW(), NOW())
ON CONFLICT (city_key, country_code) DO UPDATE
SET invalid_count  = invalid_cities.invalid_count + 1,
    last_marked_at = NOW()
RETURNING city_name, country_code, invalid_count, first_marked_at, last_marked_at
"""

COUNT_SQL = """
SELECT invalid_count FROM invalid_cities
WHERE city_key = $1 AND country_code = $2
"""

LIST_SQL = """
SELECT city_name, country_code, invalid_count, first_marked_at, last_marked_at
FROM invalid_cities
WHERE invalid_count >= $1
  AND ($2::text IS NULL OR country_code = $2)
ORDER BY last_marked_at DESC
"""

DELETE_SQL = """
DELETE FROM invalid_cities
WHERE city_key = $1 AND country_code = $2
"""

STATS_SQL = """
SELECT COUNT(*) AS flagged_count,
       COUNT(*) FILTER (WHERE invalid_count >= $1) AS blocked_count
FROM invalid_cities
"""


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReputationEntry:
    city_name: str
    country_code: str
    invalid_count: int
    first_marked_at: Optional[datetime]
    last_marked_at: Optional[datetime]
    is_blocked: bool


@dataclass(frozen=True)
class FlagResult:
    invalid_count: int
    is_blocked: bool


@dataclass(frozen=True)
class UnflagResult:
    removed: bool


def _natural_key(city_name: str, country_code: str) -> tuple[str, str]:
    return city_name.strip().lower(), country_code.strip().upper()


def _deleted_rows(status: str) -> int:
    """asyncpg returns a command tag such as 'DELETE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class ReputationStore:
    """
    Usage:
        store = ReputationStore(pool)
        await store.ensure_schema()
        result = await store.flag("Warsaw", "PL")
        if result.is_blocked: ...
    """

    def __init__(self, pool: Any, threshold: int = BLOCK_THRESHOLD) -> None:
        """
        Args:
            pool:      asyncpg connection pool (or anything exposing
                       execute / fetchrow / fetch / fetchval).
            threshold: invalid_count at which a pair counts as blocked.
        """
        self._pool = pool
        self.threshold = threshold

    def _conn(self) -> Any:
        if self._pool is None:
            raise PersistenceError("Database is not connected")
        return self._pool

    async def ensure_schema(self) -> None:
        try:
            await self._conn().execute(CREATE_TABLE_SQL)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Could not create invalid_cities table: {exc}") from exc

    async def flag(self, city_name: str, country_code: str) -> FlagResult:
        city_key, code = _natural_key(city_name, country_code)
        try:
            row = await self._conn().fetchrow(FLAG_SQL, city_key, city_name.strip(), code)
        except _DB_ERRORS as exc:
            logger.error("Failed to flag city=%r country=%s: %s", city_name, code, exc)
            raise PersistenceError(f"Failed to flag {city_name} ({code})") from exc

        count = int(row["invalid_count"])
        result = FlagResult(invalid_count=count, is_blocked=count >= self.threshold)
        logger.info(
            "City flagged: city=%r country=%s invalid_count=%d blocked=%s",
            city_name, code, count, result.is_blocked,
        )
        return result

    async def is_blocked(self, city_name: str, country_code: str) -> bool:
        city_key, code = _natural_key(city_name, country_code)
        try:
            count = await self._conn().fetchval(COUNT_SQL, city_key, code)
        except _READ_ERRORS:
            logger.warning("is_blocked lookup failed for city=%r country=%s", city_name, code, exc_info=True)
            return False
        return count is not None and int(count) >= self.threshold

    async def list_flagged(
        self,
        country_code: str | None = None,
        blocked_only: bool = True,
    ) -> list[ReputationEntry]:
        """Flagged pairs, most recently flagged first."""
        min_count = self.threshold if blocked_only else 1
        code = country_code.strip().upper() if country_code else None
        try:
            rows = await self._conn().fetch(LIST_SQL, min_count, code)
        except _READ_ERRORS:
            logger.warning("list_flagged failed (country=%s)", code, exc_info=True)
            return []
        return [
            ReputationEntry(
                city_name=row["city_name"],
                country_code=row["country_code"],
                invalid_count=int(row["invalid_count"]),
                first_marked_at=row["first_marked_at"],
                last_marked_at=row["last_marked_at"],
                is_blocked=int(row["invalid_count"]) >= self.threshold,
            )
            for row in rows
        ]

    async def list_blocked(self, country_code: str | None = None) -> list[ReputationEntry]:
        return await self.list_flagged(country_code, blocked_only=True)

    async def blocked_names(self, country_code: str) -> set[str]:
        """Lower-cased names of every blocked city in a country."""
        return {entry.city_name.lower() for entry in await self.list_blocked(country_code)}

    async def unflag(self, city_name: str, country_code: str) -> UnflagResult:
        city_key, code = _natural_key(city_name, country_code)
        try:
            status = await self._conn().execute(DELETE_SQL, city_key, code)
        except _DB_ERRORS as exc:
            logger.error("Failed to unflag city=%r country=%s: %s", city_name, code, exc)
            raise PersistenceError(f"Failed to unflag {city_name} ({code})") from exc

        removed = _deleted_rows(status) > 0
        if removed:
            logger.info("City removed from invalid list: city=%r country=%s", city_name, code)
        else:
            logger.warning("City not found in invalid list: city=%r country=%s", city_name, code)
        return UnflagResult(removed=removed)

    async def stats(self) -> dict[str, int]:
        try:
            row = await self._conn().fetchrow(STATS_SQL, self.threshold)
        except _READ_ERRORS:
            logger.warning("Reputation stats query failed", exc_info=True)
            return {"flagged_count": 0, "blocked_count": 0}
        return {
            "flagged_count": int(row["flagged_count"]),
            "blocked_count": int(row["blocked_count"]),
        }
