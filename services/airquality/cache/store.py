"""
In-process TTL cache shared by every catalog component.

Entries carry an absolute expiry computed at insertion. Reads past expiry
behave as absent and evict the entry on the spot; stats() sweeps the rest.

All map access happens under a single lock so concurrent request flows (and
the occasional worker thread) never observe a half-applied delete_pattern().

Pattern syntax is a small glob: ``*`` matches any run of
characters, everything else is literal. The pattern must match the full key.

    cache = TTLCache()
    cache.set("validation:warsaw", result, ttl_seconds=86400)
    cache.get("validation:warsaw")                 # -> result
    cache.delete_pattern("validation:*")           # -> 1
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 3600

# Distinguishes "not cached" from a cached None.
MISSING: Any = object()


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    key_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts = [re.escape(chunk) for chunk in pattern.split("*")]
    return re.compile("^" + ".*".join(parts) + "$", re.DOTALL)


class TTLCache:
    """Thread-safe key/value store with per-entry TTL and glob eviction."""

    def __init__(
        self,
        default_ttl_seconds: int = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                logger.debug("Cache key expired: %s", key)
                return default
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)
        logger.debug("Cache set: key=%s ttl=%ds", key, ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        """Evict every key fully matching ``pattern``; returns the count."""
        matcher = _compile_pattern(pattern)
        with self._lock:
            doomed = [key for key in self._entries if matcher.match(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info("Cache pattern evicted: pattern=%s keys=%d", pattern, len(doomed))
        return len(doomed)

    def keys(self) -> list[str]:
        with self._lock:
            self._sweep()
            return list(self._entries)

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cache flushed")

    def stats(self) -> CacheStats:
        with self._lock:
            self._sweep()
            return CacheStats(hits=self._hits, misses=self._misses, key_count=len(self._entries))

    def _sweep(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
