"""
Search Query Entity

A SearchQuery is the validated, immutable form of a user's event search.
Build it through ``QueryValidator`` (application layer), which coerces raw
request parameters and reports every problem at once; the checks in
``__post_init__`` only re-assert the invariants.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from enum import Enum

from event_search.core.exceptions import InvalidQueryError
from event_search.domain.entities.event import Coordinates

DEFAULT_RADIUS = 25.0
MIN_RADIUS = 1.0
MAX_RADIUS = 100.0
DEFAULT_LIMIT = 50
MAX_LIMIT = 500
MAX_KEYWORD_LENGTH = 200


class SortOrder(Enum):
    """Requested ordering of the result list."""

    RELEVANCE = "relevance"
    DATE = "date"
    DISTANCE = "distance"
    POPULARITY = "popularity"
    PRICE = "price"


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Validated event search parameters."""

    keyword: str | None = None
    coordinates: Coordinates | None = None
    radius: float = DEFAULT_RADIUS
    start_date: date | None = None
    end_date: date | None = None
    categories: frozenset[str] = frozenset()
    price_min: float | None = None
    price_max: float | None = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort: SortOrder = SortOrder.RELEVANCE
    force_refresh: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "categories", frozenset(c.strip().lower() for c in self.categories if c.strip())
        )
        errors = []
        if not MIN_RADIUS <= self.radius <= MAX_RADIUS:
            errors.append(f"radius: must be between {MIN_RADIUS:g} and {MAX_RADIUS:g}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors.append("end_date: must not be before start_date")
        if self.price_min is not None and self.price_min < 0:
            errors.append("price_min: must be >= 0")
        if self.price_max is not None and self.price_max < 0:
            errors.append("price_max: must be >= 0")
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            errors.append("price_max: must not be below price_min")
        if not 1 <= self.limit <= MAX_LIMIT:
            errors.append(f"limit: must be between 1 and {MAX_LIMIT}")
        if self.offset < 0:
            errors.append("offset: must be >= 0")
        if self.keyword is not None and len(self.keyword) > MAX_KEYWORD_LENGTH:
            errors.append(f"keyword: must be at most {MAX_KEYWORD_LENGTH} characters")
        if errors:
            raise InvalidQueryError(errors)

    @property
    def keyword_terms(self) -> str:
        """Lower-cased keyword, empty when none was given."""
        return (self.keyword or "").strip().lower()

    def signature(self) -> str:
        """
        Deterministic cache key for the result set this query produces.

        Pagination and ``force_refresh`` are excluded: every page of one
        search is served from the same cached ranking.
        """
        payload = {
            "keyword": " ".join(self.keyword_terms.split()) or None,
            "lat": round(self.coordinates.lat, 4) if self.coordinates else None,
            "lng": round(self.coordinates.lng, 4) if self.coordinates else None,
            "radius": float(self.radius),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "categories": sorted(self.categories),
            "price_min": self.price_min,
            "price_max": self.price_max,
            "sort": self.sort.value,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))
