"""
Eventbrite API Integration

API Documentation: https://www.eventbrite.com/platform/api

Authentication: OAuth bearer token (``Authorization: Bearer <token>``).

Rate Limits:
- 1000 requests per hour per token
"""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from event_search.domain.entities.event import PriceRange, RawEvent
from event_search.domain.entities.query import SearchQuery, SortOrder
from event_search.infrastructure.sources.base_client import BaseEventProvider

logger = logging.getLogger(__name__)

EVENTBRITE_API_BASE = "https://www.eventbriteapi.com/v3"

# Eventbrite caps page_size at 50
MAX_PAGE_SIZE = 50


class EventbriteProvider(BaseEventProvider):
    """
    Eventbrite event search.

    Usage:
        provider = EventbriteProvider(token="...")
        result = await provider.search(query)
    """

    provider_id = "eventbrite"
    _service_name = "Eventbrite"
    _search_path = "/events/search/"

    def __init__(
        self,
        token: str | None,
        timeout: float = 8.0,
        page_size: int = 50,
        base_url: str = EVENTBRITE_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            page_size=min(page_size, MAX_PAGE_SIZE),
            transport=transport,
        )
        self._token = token

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    def _build_params(self, query: SearchQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query.keyword,
            "expand": "venue,organizer,ticket_availability",
            "page_size": min(self.page_size, query.limit + query.offset),
        }
        if query.coordinates:
            params["location.latitude"] = query.coordinates.lat
            params["location.longitude"] = query.coordinates.lng
            params["location.within"] = f"{math.ceil(query.radius)}mi"
        if query.start_date:
            params["start_date.range_start"] = self._day_start(query.start_date)
        if query.end_date:
            params["start_date.range_end"] = self._day_end(query.end_date)
        if query.sort is SortOrder.DATE:
            params["sort_by"] = "date"
        return params

    def _extract_items(self, payload: Any) -> list[Any]:
        items = payload.get("events", [])
        if not isinstance(items, list):
            raise TypeError("events is not a list")
        return items

    def _parse_event(self, item: dict[str, Any]) -> RawEvent | None:
        name = item.get("name")
        title = (name.get("text") if isinstance(name, dict) else name) or ""
        title = title.strip()
        if not title:
            return None

        description = (item.get("description") or {}).get("text") or item.get("summary")
        category = (item.get("category") or {}).get("name") or (item.get("subcategory") or {}).get("name")
        venue = item.get("venue") or {}
        address = venue.get("address") or {}
        full_address = address.get("localized_address_display") or ", ".join(
            p for p in (address.get("address_1"), address.get("city"), address.get("region")) if p
        )
        logo = item.get("logo") or {}

        return RawEvent(
            title=title,
            description=description.strip() if description else None,
            category=category,
            start_time=self._parse_datetime((item.get("start") or {}).get("utc")),
            venue_name=venue.get("name"),
            address=full_address or None,
            coordinates=self._coordinates(
                venue.get("latitude") or address.get("latitude"),
                venue.get("longitude") or address.get("longitude"),
            ),
            price=self._price(item),
            image_url=logo.get("url") or (logo.get("original") or {}).get("url"),
            ticket_urls=(item["url"],) if item.get("url") else (),
            popularity=self._popularity(item),
            external_id=item.get("id"),
            provider=self.provider_id,
        )

    def _price(self, item: dict[str, Any]) -> PriceRange | None:
        if item.get("is_free") is True:
            return PriceRange(min=0.0, max=0.0)
        availability = item.get("ticket_availability") or {}
        minimum = availability.get("minimum_ticket_price") or {}
        maximum = availability.get("maximum_ticket_price") or {}
        low = self._to_float(minimum.get("major_value"))
        if low is None:
            return None
        return PriceRange(
            min=low,
            max=self._to_float(maximum.get("major_value")),
            currency=minimum.get("currency") or "USD",
        )

    def _popularity(self, item: dict[str, Any]) -> int | None:
        capacity = self._to_float(item.get("capacity"))
        return int(capacity) if capacity is not None else None
