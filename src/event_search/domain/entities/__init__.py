"""
Domain Entities

Core business objects for event search.
"""

from __future__ import annotations

from .event import (
    CanonicalEvent,
    Coordinates,
    PriceRange,
    ProviderResult,
    ProviderStatus,
    RawEvent,
    is_placeholder_image,
)
from .query import SearchQuery, SortOrder

__all__ = [
    # Event entities
    "RawEvent",
    "CanonicalEvent",
    "Coordinates",
    "PriceRange",
    "ProviderResult",
    "ProviderStatus",
    "is_placeholder_image",
    # Query
    "SearchQuery",
    "SortOrder",
]
