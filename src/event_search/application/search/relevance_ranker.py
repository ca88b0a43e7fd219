"""
RelevanceRanker - Additive Event Scoring

Score components (defaults, all tunable through RankingConfig):

    distance     max(0, 50 - miles from the user)     needs both coordinates
    keyword      +30 in title, +10 in description     case-insensitive substring
    category     +25 when the event category matches a requested one
    image        +15 for a real (non-placeholder) image
    recency      max(0, 10 - days / 3) within 30 days  fractional days from now,
                                                     past or future

A component whose input is missing contributes zero; it is never an error.

Ordering: ``relevance`` sorts by score, descending. Explicit sorts
(``date``, ``distance``, ``price``, ``popularity``) take priority and use the
score as tiebreaker; events missing the sort value go last. All sorts are
stable, so equal events keep their deduplication order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from event_search.core.geo import DistanceUnit, haversine_distance
from event_search.domain.entities.event import CanonicalEvent
from event_search.domain.entities.query import SearchQuery, SortOrder

logger = logging.getLogger(__name__)


@dataclass
class RankingConfig:
    """
    Configuration for relevance scoring.

    Points are additive; there is no normalization.
    """

    # Distance
    distance_max_points: float = 50.0
    distance_unit: DistanceUnit = "mi"

    # Text match
    keyword_title_points: float = 30.0
    keyword_description_points: float = 10.0

    # Metadata
    category_points: float = 25.0
    image_points: float = 15.0

    # Recency
    recency_max_points: float = 10.0
    recency_window_days: int = 30
    recency_days_per_point: float = 3.0

    @classmethod
    def default(cls) -> RankingConfig:
        """Get default configuration."""
        return cls()

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> RankingConfig:
        """Build from a settings mapping, ignoring unknown keys."""
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RelevanceRanker:
    """
    Scores and orders canonical events for one query.

    Example:
        ranker = RelevanceRanker()
        ranked = ranker.rank(events, query)
        ranked[0].relevance_score
    """

    def __init__(
        self,
        config: RankingConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._config = config or RankingConfig.default()
        self._clock = clock

    @property
    def config(self) -> RankingConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def distance_to(self, event: CanonicalEvent, query: SearchQuery) -> float | None:
        if query.coordinates is None or event.coordinates is None:
            return None
        return haversine_distance(query.coordinates, event.coordinates, self._config.distance_unit)

    def score(self, event: CanonicalEvent, query: SearchQuery, now: datetime | None = None) -> float:
        """Relevance score of one event. Missing inputs contribute zero."""
        config = self._config
        total = 0.0

        distance = self.distance_to(event, query)
        if distance is not None:
            total += max(0.0, config.distance_max_points - distance)

        keyword = query.keyword_terms
        if keyword:
            if keyword in event.title.lower():
                total += config.keyword_title_points
            if event.description and keyword in event.description.lower():
                total += config.keyword_description_points

        if query.categories and event.category:
            category = event.category.lower()
            if any(wanted in category for wanted in query.categories):
                total += config.category_points

        if event.has_real_image:
            total += config.image_points

        if event.start_time is not None:
            now = now or self._clock()
            if now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            days = abs((event.start_time - now).total_seconds()) / 86400
            if days <= config.recency_window_days:
                total += max(0.0, config.recency_max_points - days / config.recency_days_per_point)

        return total

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def rank(self, events: Iterable[CanonicalEvent], query: SearchQuery) -> list[CanonicalEvent]:
        """
        Score every event and order the list for ``query.sort``.

        Returns:
            New CanonicalEvent instances with ``relevance_score`` set.
        """
        now = self._clock()
        scored = [event.with_score(self.score(event, query, now)) for event in events]

        if query.sort is SortOrder.RELEVANCE:
            ranked = sorted(scored, key=lambda e: -e.relevance_score)
        else:
            ranked = sorted(scored, key=lambda e: self._sort_key(e, query))

        if ranked:
            logger.debug(
                f"Ranked {len(ranked)} events by {query.sort.value}, "
                f"top score {ranked[0].relevance_score:.1f}"
            )
        return ranked

    def _sort_key(self, event: CanonicalEvent, query: SearchQuery) -> tuple[bool, float, float]:
        value: float | None = 0.0
        if query.sort is SortOrder.DATE:
            value = event.start_time.timestamp() if event.start_time else None
        elif query.sort is SortOrder.DISTANCE:
            value = self.distance_to(event, query)
        elif query.sort is SortOrder.PRICE:
            value = event.price.min if event.price else None
        elif query.sort is SortOrder.POPULARITY:
            value = -event.popularity if event.popularity is not None else None
        return (value is None, value if value is not None else 0.0, -event.relevance_score)
