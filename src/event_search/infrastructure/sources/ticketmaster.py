"""
Ticketmaster Discovery API Integration

API Documentation: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/

Rate Limits:
- 5000 requests per day, 5 requests per second

Notes:
- Radius is always requested in miles
- Events carry several image renditions; the widest 16:9 one is preferred
- Price comes from the first entry of ``priceRanges``
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

import httpx

from event_search.domain.entities.event import PriceRange, RawEvent
from event_search.domain.entities.query import SearchQuery
from event_search.infrastructure.sources.base_client import BaseEventProvider

logger = logging.getLogger(__name__)

TICKETMASTER_API_BASE = "https://app.ticketmaster.com/discovery/v2"

# Ticketmaster rejects page sizes above this
MAX_PAGE_SIZE = 200


class TicketmasterProvider(BaseEventProvider):
    """
    Ticketmaster Discovery v2 event search.

    Usage:
        provider = TicketmasterProvider(api_key="...")
        result = await provider.search(query)
    """

    provider_id = "ticketmaster"
    _service_name = "Ticketmaster"
    _search_path = "/events.json"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 8.0,
        page_size: int = 50,
        base_url: str = TICKETMASTER_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            page_size=min(page_size, MAX_PAGE_SIZE),
            transport=transport,
        )
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _build_params(self, query: SearchQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "apikey": self._api_key,
            "keyword": query.keyword,
            "size": min(self.page_size, query.limit + query.offset),
            "sort": "relevance,desc",
        }
        if query.coordinates:
            params["latlong"] = f"{query.coordinates.lat},{query.coordinates.lng}"
            params["radius"] = math.ceil(query.radius)
            params["unit"] = "miles"
        if query.start_date:
            params["startDateTime"] = self._day_start(query.start_date)
        if query.end_date:
            params["endDateTime"] = self._day_end(query.end_date)
        if query.categories:
            params["classificationName"] = ",".join(sorted(query.categories))
        return params

    def _extract_items(self, payload: Any) -> list[Any]:
        # No "_embedded" key means zero results
        items = payload.get("_embedded", {}).get("events", [])
        if not isinstance(items, list):
            raise TypeError("_embedded.events is not a list")
        return items

    def _parse_event(self, item: dict[str, Any]) -> RawEvent | None:
        title = (item.get("name") or "").strip()
        if not title:
            return None

        venue = (item.get("_embedded", {}).get("venues") or [{}])[0]
        location = venue.get("location") or {}
        address_parts = [
            (venue.get("address") or {}).get("line1"),
            (venue.get("city") or {}).get("name"),
            (venue.get("state") or {}).get("stateCode"),
        ]
        address = " ".join(p for p in address_parts if p) or None

        description = item.get("info") or item.get("pleaseNote") or ""
        promoter = item.get("promoter") or {}
        if promoter.get("description"):
            description = f"{description} {promoter['description']}"

        return RawEvent(
            title=title,
            description=description.strip() or None,
            category=self._category(item),
            start_time=self._start_time(item.get("dates", {}).get("start") or {}),
            venue_name=venue.get("name"),
            address=address,
            coordinates=self._coordinates(location.get("latitude"), location.get("longitude")),
            price=self._price(item.get("priceRanges") or []),
            image_url=self._best_image(item.get("images") or []),
            ticket_urls=self._ticket_urls(item),
            external_id=item.get("id"),
            provider=self.provider_id,
        )

    def _start_time(self, start: dict[str, Any]) -> datetime | None:
        if start.get("dateTime"):
            return self._parse_datetime(start["dateTime"])
        local_date = start.get("localDate")
        if not local_date:
            return None
        local_time = start.get("localTime") or "00:00:00"
        # Venue-local time without offset; kept as wall-clock time
        return self._parse_datetime(f"{local_date}T{local_time}")

    @staticmethod
    def _category(item: dict[str, Any]) -> str | None:
        classifications = item.get("classifications") or []
        if not classifications:
            return None
        first = classifications[0]
        return (first.get("segment") or {}).get("name") or (first.get("genre") or {}).get("name")

    def _price(self, ranges: list[dict[str, Any]]) -> PriceRange | None:
        if not ranges:
            return None
        first = ranges[0]
        low = self._to_float(first.get("min"))
        if low is None:
            return None
        return PriceRange(min=low, max=self._to_float(first.get("max")), currency=first.get("currency") or "USD")

    @staticmethod
    def _best_image(images: list[dict[str, Any]]) -> str | None:
        candidates = [img for img in images if img.get("url")]
        if not candidates:
            return None
        # Prefer 16:9 renditions, then the widest
        best = max(
            candidates,
            key=lambda img: (img.get("ratio") == "16_9", img.get("width") or 0),
        )
        return best["url"]

    @staticmethod
    def _ticket_urls(item: dict[str, Any]) -> tuple[str, ...]:
        urls: list[str] = []
        if item.get("url"):
            urls.append(item["url"])
        for presale in (item.get("sales") or {}).get("presales") or []:
            url = presale.get("url")
            if url and url not in urls:
                urls.append(url)
        return tuple(urls)
