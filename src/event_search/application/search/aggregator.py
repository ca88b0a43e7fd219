"""
EventAggregator - Search Pipeline Orchestration

    SearchQuery
        │
        ▼
    ResultCache.get ──hit──────────────────────────────┐
        │ miss (or force_refresh)                      │
        ▼                                              │
    FanoutCoordinator   (one guarded task per provider)│
        ▼                                              │
    Deduplicator        (three match keys)             │
        ▼                                              │
    filter_events       (radius / dates / price)       │
        ▼                                              │
    RelevanceRanker     (score + order)                │
        ▼                                              │
    ResultCache.put     (shorter TTL when partial)     │
        ▼                                              ▼
    paginate ──────────────────────────────────► AggregatedResponse

The whole ranked list is cached; pagination is applied on the way out, so
every page of one search shares a cache entry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from event_search.application.search.deduplicator import Deduplicator
from event_search.application.search.fanout import FanoutCoordinator
from event_search.application.search.filters import filter_events
from event_search.application.search.query_validator import validate_search_params
from event_search.application.search.relevance_ranker import RelevanceRanker
from event_search.core.exceptions import AggregateFailureError
from event_search.domain.entities.event import CanonicalEvent
from event_search.domain.entities.query import SearchQuery
from event_search.infrastructure.cache.result_cache import ResultCache

logger = logging.getLogger(__name__)


@dataclass
class AggregatedResponse:
    """One page of aggregated results plus provenance."""

    events: list[CanonicalEvent]
    total_count: int
    has_more: bool
    sources: dict[str, int]
    failed_providers: list[str] = field(default_factory=list)
    cached: bool = False
    error: str | None = None

    @classmethod
    def from_failure(cls, error: AggregateFailureError) -> AggregatedResponse:
        """Empty response for a search where every provider failed."""
        return cls(
            events=[],
            total_count=0,
            has_more=False,
            sources={pid: 0 for pid in error.provider_errors},
            failed_providers=list(error.provider_errors),
            error="Event providers are currently unavailable",
        )

    def to_dict(self) -> dict[str, Any]:
        """Outbound contract (camelCase keys)."""
        result: dict[str, Any] = {
            "events": [event.to_dict() for event in self.events],
            "totalCount": self.total_count,
            "hasMore": self.has_more,
            "sources": self.sources,
            "failedProviders": self.failed_providers,
            "cached": self.cached,
        }
        if self.error:
            result["error"] = self.error
        return result


class EventAggregator:
    """
    Runs the full search pipeline for one query.

    Example:
        aggregator = EventAggregator(coordinator, ResultCache())
        response = await aggregator.search(query)
        payload = response.to_dict()
    """

    def __init__(
        self,
        coordinator: FanoutCoordinator,
        cache: ResultCache,
        deduplicator: Deduplicator | None = None,
        ranker: RelevanceRanker | None = None,
        cache_ttl: float = 300.0,
        partial_cache_ttl: float = 60.0,
    ) -> None:
        self._coordinator = coordinator
        self._cache = cache
        self._deduplicator = deduplicator or Deduplicator()
        self._ranker = ranker or RelevanceRanker()
        self.cache_ttl = cache_ttl
        self.partial_cache_ttl = partial_cache_ttl

    @property
    def coordinator(self) -> FanoutCoordinator:
        return self._coordinator

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def search_params(self, params: Mapping[str, Any]) -> AggregatedResponse:
        """
        Validate raw request parameters, then search.

        Raises:
            InvalidQueryError: Before any provider is contacted.
            AggregateFailureError: When every provider failed.
        """
        return await self.search(validate_search_params(params))

    async def search(self, query: SearchQuery) -> AggregatedResponse:
        """
        Search all providers (or the cache) for ``query``.

        Raises:
            AggregateFailureError: When every provider failed.
        """
        signature = query.signature()

        if not query.force_refresh:
            entry = await self._cache.get(signature)
            if entry is not None:
                logger.debug("Serving search from cache")
                return self._paginate(
                    entry.events,
                    query,
                    sources=entry.sources,
                    failed=list(entry.failed_providers),
                    cached=True,
                )

        outcome = await self._coordinator.fan_out(query)

        canonical, stats = self._deduplicator.deduplicate(outcome.events())
        filtered = filter_events(canonical, query, self._ranker.config.distance_unit)
        ranked = self._ranker.rank(filtered, query)

        failed = [r.provider_id for r in outcome.failed]
        sources = outcome.sources()

        if not query.force_refresh:
            ttl = self.partial_cache_ttl if failed else self.cache_ttl
            await self._cache.put(
                signature,
                ranked,
                sources=sources,
                ttl_seconds=ttl,
                failed_providers=failed,
            )

        logger.info(
            f"Search: {stats.total_input} raw -> {stats.unique_events} unique -> "
            f"{len(ranked)} matching events from {len(outcome.succeeded)} providers"
        )
        return self._paginate(ranked, query, sources=sources, failed=failed, cached=False)

    @staticmethod
    def _paginate(
        events: Sequence[CanonicalEvent],
        query: SearchQuery,
        *,
        sources: dict[str, int],
        failed: list[str],
        cached: bool,
    ) -> AggregatedResponse:
        page = list(events[query.offset : query.offset + query.limit])
        return AggregatedResponse(
            events=page,
            total_count=len(events),
            has_more=query.offset + len(page) < len(events),
            sources=dict(sources),
            failed_providers=failed,
            cached=cached,
        )
