"""
Cache Infrastructure

Caches ranked search results keyed by query signature.
"""

from __future__ import annotations

from event_search.infrastructure.cache.result_cache import (
    CacheBackend,
    CacheEntry,
    CacheStats,
    InMemoryCacheBackend,
    ResultCache,
)

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheStats",
    "InMemoryCacheBackend",
    "ResultCache",
]
