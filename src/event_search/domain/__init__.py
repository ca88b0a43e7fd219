"""
Domain Layer - Core Business Objects

Contains:
- entities: Events, provider results and the search query
"""

from .entities import (
    CanonicalEvent,
    Coordinates,
    PriceRange,
    ProviderResult,
    ProviderStatus,
    RawEvent,
    SearchQuery,
    SortOrder,
)

__all__ = [
    "RawEvent",
    "CanonicalEvent",
    "Coordinates",
    "PriceRange",
    "ProviderResult",
    "ProviderStatus",
    "SearchQuery",
    "SortOrder",
]
