"""
RapidAPI Real-Time Events Search Integration

API: https://rapidapi.com/letscrape-6bRBa3QguO5/api/real-time-events-search

Authentication: ``X-RapidAPI-Key`` + ``X-RapidAPI-Host`` headers.

Notes:
- No radius parameter: the location is sent as "lat,lng" and results may
  fall outside the requested radius (filtered after deduplication)
- Requested categories are folded into the free-text query
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from event_search.domain.entities.event import PriceRange, RawEvent
from event_search.domain.entities.query import SearchQuery
from event_search.infrastructure.sources.base_client import BaseEventProvider

logger = logging.getLogger(__name__)

RAPIDAPI_HOST = "real-time-events-search.p.rapidapi.com"


class RapidApiEventsProvider(BaseEventProvider):
    """
    Real-time events search via RapidAPI.

    Usage:
        provider = RapidApiEventsProvider(api_key="...")
        result = await provider.search(query)
    """

    provider_id = "rapidapi"
    _service_name = "RapidAPI Events"
    _search_path = "/search-events"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 8.0,
        page_size: int = 50,
        host: str = RAPIDAPI_HOST,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host} if api_key else {}
        super().__init__(
            base_url=f"https://{host}",
            timeout=timeout,
            headers=headers,
            page_size=page_size,
            transport=transport,
        )
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _build_params(self, query: SearchQuery) -> dict[str, Any]:
        terms = [query.keyword] if query.keyword else []
        terms.extend(sorted(query.categories))
        params: dict[str, Any] = {
            "query": " ".join(terms) or "events",
            "start": 0,
            "limit": min(self.page_size, query.limit + query.offset),
            "is_virtual": "false",
        }
        if query.coordinates:
            params["location"] = f"{query.coordinates.lat},{query.coordinates.lng}"
        return params

    def _extract_items(self, payload: Any) -> list[Any]:
        items = payload.get("data", [])
        if not isinstance(items, list):
            raise TypeError("data is not a list")
        return items

    def _parse_event(self, item: dict[str, Any]) -> RawEvent | None:
        title = (item.get("name") or "").strip()
        if not title:
            return None

        venue = item.get("venue") or {}
        image = next(
            (
                candidate
                for candidate in (item.get("thumbnail"), item.get("image"), venue.get("image"))
                if isinstance(candidate, str) and candidate.startswith("http")
            ),
            None,
        )

        ticket_urls: list[str] = []
        if item.get("link"):
            ticket_urls.append(item["link"])
        for link in item.get("ticket_links") or []:
            url = link.get("link") if isinstance(link, dict) else None
            if url and url not in ticket_urls:
                ticket_urls.append(url)

        return RawEvent(
            title=title,
            description=(item.get("description") or "").strip() or None,
            category=(venue.get("subtype") or None),
            start_time=self._parse_datetime(item.get("start_time_utc") or item.get("start_time")),
            venue_name=venue.get("name"),
            address=venue.get("full_address"),
            coordinates=self._coordinates(venue.get("latitude"), venue.get("longitude")),
            price=self._price(item),
            image_url=image,
            ticket_urls=tuple(ticket_urls),
            external_id=item.get("event_id"),
            provider=self.provider_id,
        )

    def _price(self, item: dict[str, Any]) -> PriceRange | None:
        if item.get("is_free") in (True, "true"):
            return PriceRange(min=0.0, max=0.0)
        low = self._first_float(item, "min_ticket_price", "min_price")
        if low is None:
            return None
        return PriceRange(min=low, max=self._first_float(item, "max_ticket_price", "max_price"))

    def _first_float(self, item: dict[str, Any], *keys: str) -> float | None:
        for key in keys:
            value = self._to_float(item.get(key))
            if value is not None:
                return value
        return None
