"""
Result Cache

Stores ranked search results keyed by query signature, with a per-entry TTL.

Features:
- Pluggable backend (CacheBackend protocol); in-memory default on
  cachetools.TLRUCache for per-entry expiration and LRU eviction
- Entries are immutable and replaced wholesale, never mutated
- Expired entries are never returned, whatever the backend does
- Backend faults are logged and treated as a miss (reads) or skipped (writes)

The cache is constructed explicitly and injected; there is no module-level
instance.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from cachetools import TLRUCache

from event_search.domain.entities.event import CanonicalEvent

logger = logging.getLogger(__name__)

KEY_PREFIX = "events:"


@dataclass(frozen=True)
class CacheEntry:
    """One cached result set."""

    events: tuple[CanonicalEvent, ...]
    sources: dict[str, int]
    created_at: float
    ttl_seconds: float
    failed_providers: tuple[str, ...] = ()

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_providers)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@runtime_checkable
class CacheBackend(Protocol):
    """Storage used by ResultCache. Implementations may raise on faults."""

    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(self, key: str, entry: CacheEntry) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear(self) -> int: ...


class InMemoryCacheBackend:
    """
    Process-local backend.

    Uses cachetools.TLRUCache: each entry expires at ``created_at + ttl``
    on the same clock the ResultCache uses, and the least recently used
    entry is evicted once ``max_size`` is reached.
    """

    def __init__(self, max_size: int = 512, clock: Callable[[], float] = time.monotonic) -> None:
        self._cache: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=max_size,
            ttu=lambda _key, entry, _now: entry.expires_at,
            timer=clock,
        )
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> CacheEntry | None:
        async with self._lock:
            return self._cache.get(key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        async with self._lock:
            self._cache[key] = entry

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def __len__(self) -> int:
        return len(self._cache)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    expirations: int = 0
    errors: int = 0

    @property
    def total_requests(self) -> int:
        """Total cache requests."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate (0-1)."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "expirations": self.expirations,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 3),
        }


def cache_key(signature: str) -> str:
    """Backend key for a query signature (fixed length, safe for any backend)."""
    return KEY_PREFIX + hashlib.sha256(signature.encode("utf-8")).hexdigest()


class ResultCache:
    """
    Query-signature keyed cache of ranked results.

    Example:
        cache = ResultCache(InMemoryCacheBackend(), default_ttl=300)
        entry = await cache.get(query.signature())
        if entry is None:
            events = await run_search(query)
            await cache.put(query.signature(), events, sources={"ticketmaster": 12})
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._backend = backend if backend is not None else InMemoryCacheBackend(clock=clock)
        self.default_ttl = default_ttl
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def get(self, signature: str) -> CacheEntry | None:
        """
        Look up a result set.

        Returns:
            The live entry, or None on a miss, on expiry or on backend failure.
        """
        try:
            entry = await self._backend.get(cache_key(signature))
        except Exception as e:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

        if entry is None:
            self._stats.misses += 1
            return None
        if entry.is_expired(self._clock()):
            self._stats.expirations += 1
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        logger.debug(f"Cache hit: {len(entry.events)} events")
        return entry

    async def put(
        self,
        signature: str,
        events: Iterable[CanonicalEvent],
        *,
        sources: dict[str, int] | None = None,
        ttl_seconds: float | None = None,
        failed_providers: Iterable[str] = (),
    ) -> CacheEntry | None:
        """
        Store (replace) the result set for a signature.

        Returns:
            The stored entry, or None when the backend rejected the write.
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return None
        entry = CacheEntry(
            events=tuple(events),
            sources=dict(sources or {}),
            created_at=self._clock(),
            ttl_seconds=ttl,
            failed_providers=tuple(failed_providers),
        )
        try:
            await self._backend.set(cache_key(signature), entry)
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache write failed, result not cached: {e}")
            return None
        self._stats.writes += 1
        return entry

    async def invalidate(self, signature: str) -> bool:
        try:
            return await self._backend.delete(cache_key(signature))
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache invalidation failed: {e}")
            return False

    async def clear(self) -> int:
        return await self._backend.clear()
