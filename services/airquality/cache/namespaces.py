"""
Typed cache namespaces layered over one TTLCache.

Each concern owns a prefix and a default TTL, and clears itself without
knowing how other concerns build their keys:

  sources        sources:{source}:{country}          1 hour
  validation     validation:{lowercased name}        24 hours
  descriptions   descriptions:{name}:{country}       7 days
  country_names  country_names:{code}                1 hour
  history        history:{name}:{country}            30 minutes
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from services.airquality.cache.store import MISSING, TTLCache
from services.airquality.config import Settings
from services.airquality.errors import InputError


class CacheNamespace:
    def __init__(self, store: TTLCache, prefix: str, ttl_seconds: int) -> None:
        self._store = store
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def key(self, *parts: str) -> str:
        return ":".join((self.prefix, *parts))

    def get(self, *parts: str, default: Any = MISSING) -> Any:
        return self._store.get(self.key(*parts), default)

    def set(self, *parts: str, value: Any, ttl_seconds: int | None = None) -> None:
        self._store.set(self.key(*parts), value, ttl_seconds or self.ttl_seconds)

    def delete(self, *parts: str) -> bool:
        return self._store.delete(self.key(*parts))

    def clear(self) -> int:
        return self._store.delete_pattern(f"{self.prefix}:*")


@dataclass
class CacheNamespaces:
    sources: CacheNamespace
    validation: CacheNamespace
    descriptions: CacheNamespace
    country_names: CacheNamespace
    history: CacheNamespace

    @classmethod
    def create(cls, store: TTLCache, settings: Settings) -> "CacheNamespaces":
        return cls(
            sources=CacheNamespace(store, "sources", settings.source_cache_ttl_s),
            validation=CacheNamespace(store, "validation", settings.validation_cache_ttl_s),
            descriptions=CacheNamespace(store, "descriptions", settings.description_cache_ttl_s),
            country_names=CacheNamespace(store, "country_names", settings.country_name_cache_ttl_s),
            history=CacheNamespace(store, "history", settings.history_cache_ttl_s),
        )

    @classmethod
    def scopes(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def clear(self, scope: str | None = None) -> dict[str, int]:
        """Clear one scope, or every scope when None. Returns evictions per scope."""
        if scope is None:
            return {name: getattr(self, name).clear() for name in self.scopes()}
        if scope not in self.scopes():
            raise InputError(
                f"Unknown cache scope: {scope}. Available scopes: {', '.join(self.scopes())}"
            )
        return {scope: getattr(self, scope).clear()}
