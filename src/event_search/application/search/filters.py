"""
Result filters applied after deduplication.

Providers do not all honor every search parameter (some ignore the radius,
some the date window), so canonical events that provably violate the query
are dropped here. An event whose value for a filtered field is unknown is
kept: missing data is not evidence of a mismatch.

Categories are not filtered; provider taxonomies differ too much. Category
matches are rewarded by the ranker instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from event_search.core.geo import DistanceUnit, haversine_distance
from event_search.domain.entities.event import CanonicalEvent
from event_search.domain.entities.query import SearchQuery

logger = logging.getLogger(__name__)


def within_radius(event: CanonicalEvent, query: SearchQuery, unit: DistanceUnit = "mi") -> bool:
    if query.coordinates is None or event.coordinates is None:
        return True
    return haversine_distance(query.coordinates, event.coordinates, unit) <= query.radius


def within_dates(event: CanonicalEvent, query: SearchQuery) -> bool:
    day = event.event_date
    if day is None:
        return True
    if query.start_date and day < query.start_date:
        return False
    if query.end_date and day > query.end_date:
        return False
    return True


def within_price(event: CanonicalEvent, query: SearchQuery) -> bool:
    if event.price is None or (query.price_min is None and query.price_max is None):
        return True
    low = event.price.min
    high = event.price.max if event.price.max is not None else float("inf")
    if query.price_max is not None and low > query.price_max:
        return False
    if query.price_min is not None and high < query.price_min:
        return False
    return True


def filter_events(
    events: Iterable[CanonicalEvent],
    query: SearchQuery,
    unit: DistanceUnit = "mi",
) -> list[CanonicalEvent]:
    """Keep events compatible with the query's radius, date window and price range."""
    kept: list[CanonicalEvent] = []
    dropped = 0
    for event in events:
        if within_radius(event, query, unit) and within_dates(event, query) and within_price(event, query):
            kept.append(event)
        else:
            dropped += 1
    if dropped:
        logger.debug(f"Filtered out {dropped} events outside the query bounds")
    return kept
