"""
Cache package.

One process-wide TTLCache, partitioned into typed namespaces per concern.
"""

from services.airquality.cache.namespaces import CacheNamespace, CacheNamespaces
from services.airquality.cache.store import MISSING, CacheStats, TTLCache

__all__ = ["CacheNamespace", "CacheNamespaces", "CacheStats", "MISSING", "TTLCache"]
