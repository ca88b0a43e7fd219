"""
Event Search Aggregator

Searches several external event providers concurrently, merges duplicate
listings and returns one ranked, cached result list.

Architecture:
- domain: events, provider results, search query
- application: validation, fan-out, deduplication, ranking
- infrastructure: provider adapters and result cache
- api: FastAPI HTTP surface

Example:
    from event_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({"config_path": None})
    aggregator = container.aggregator()
    response = await aggregator.search_params({"keyword": "jazz", "lat": 40.73, "lng": -73.99})
"""

from event_search.application.search import AggregatedResponse, EventAggregator
from event_search.config import AggregatorSettings
from event_search.domain.entities import CanonicalEvent, SearchQuery

__version__ = "0.1.0"

__all__ = [
    "AggregatedResponse",
    "AggregatorSettings",
    "CanonicalEvent",
    "EventAggregator",
    "SearchQuery",
    "__version__",
]
