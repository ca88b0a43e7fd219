"""
Event Entities - Provider and Canonical Event Domain Model

Key Entities:
    - RawEvent: One event as reported by one provider
    - ProviderResult: Outcome of one provider call (status + events)
    - CanonicalEvent: Deduplicated event, possibly merged from several providers

Architecture:
    All entities are frozen dataclasses. Nothing downstream of an adapter
    mutates an event; merging and scoring build new instances.

    Datetimes are normalized to timezone-aware values on construction
    (naive values are taken as UTC) so events from different providers
    compare and sort safely.

Example:
    >>> raw = RawEvent(
    ...     title="Jazz Night at Blue Note",
    ...     start_time=datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc),
    ...     venue_name="Blue Note",
    ...     provider="ticketmaster",
    ... )
    >>> event = CanonicalEvent.from_raw(raw)
    >>> event.merged_from
    ('ticketmaster',)
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

# Image URLs that providers use when an event has no picture of its own
PLACEHOLDER_IMAGE_MARKERS: tuple[str, ...] = (
    "/community-event.png",
    "/images/categories/",
    "/placeholder.svg",
    "via.placeholder.com",
)


def is_placeholder_image(url: str | None) -> bool:
    """True when ``url`` is missing or points at a generic stock image."""
    if not url or not url.strip():
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in PLACEHOLDER_IMAGE_MARKERS)


@dataclass(frozen=True, slots=True)
class Coordinates:
    """WGS84 point."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"longitude out of range: {self.lng}")

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True, slots=True)
class PriceRange:
    """Ticket price range. ``max`` is None when only a floor is known."""

    min: float
    max: float | None = None
    currency: str = "USD"

    @property
    def is_free(self) -> bool:
        return self.min == 0 and (self.max is None or self.max == 0)

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "currency": self.currency}


class ProviderStatus(Enum):
    """Outcome classification of one provider call."""

    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    CIRCUIT_OPEN = "circuit_open"

    @property
    def is_failure(self) -> bool:
        return self is not ProviderStatus.OK


def _as_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class RawEvent:
    """
    One event as produced by a provider adapter.

    Every field except ``title`` may be missing; the pipeline must cope with
    partial records.
    """

    title: str
    description: str | None = None
    category: str | None = None
    start_time: datetime | None = None
    venue_name: str | None = None
    address: str | None = None
    coordinates: Coordinates | None = None
    price: PriceRange | None = None
    image_url: str | None = None
    ticket_urls: tuple[str, ...] = ()
    popularity: int | None = None
    external_id: str | None = None
    provider: str = "unknown"

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_time", _as_aware(self.start_time))
        object.__setattr__(self, "ticket_urls", tuple(self.ticket_urls))

    @property
    def event_date(self) -> date | None:
        """Calendar date the event starts on, in its own timezone."""
        return self.start_time.date() if self.start_time else None

    @property
    def has_real_image(self) -> bool:
        return not is_placeholder_image(self.image_url)

    @property
    def description_length(self) -> int:
        return len(self.description or "")


@dataclass(frozen=True, slots=True)
class CanonicalEvent(RawEvent):
    """
    A deduplicated event.

    ``merged_from`` lists the provider tags whose records were folded into
    this event, in order of first contribution. ``relevance_score`` is zero
    until the ranker assigns one.
    """

    merged_from: tuple[str, ...] = ()
    relevance_score: float = 0.0

    @classmethod
    def from_raw(cls, raw: RawEvent) -> CanonicalEvent:
        """Promote a provider record to a single-source canonical event."""
        if isinstance(raw, CanonicalEvent):
            return raw
        values = {f.name: getattr(raw, f.name) for f in fields(RawEvent)}
        return cls(**values, merged_from=(raw.provider,))

    @property
    def event_id(self) -> str:
        if self.external_id:
            return f"{self.provider}:{self.external_id}"
        return f"{self.provider}:{self.title}"

    def with_score(self, score: float) -> CanonicalEvent:
        return replace(self, relevance_score=score)

    def to_dict(self) -> dict[str, Any]:
        """Outbound representation (camelCase keys)."""
        return {
            "id": self.event_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "date": self.event_date.isoformat() if self.event_date else None,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "venue": self.venue_name,
            "address": self.address,
            "location": self.coordinates.to_dict() if self.coordinates else None,
            "price": self.price.to_dict() if self.price else None,
            "imageUrl": self.image_url,
            "ticketLinks": list(self.ticket_urls),
            "popularity": self.popularity,
            "source": self.provider,
            "mergedFrom": list(self.merged_from),
            "relevanceScore": round(self.relevance_score, 2),
        }


@dataclass(frozen=True, slots=True)
class ProviderResult:
    """Outcome of one provider call. ``events`` is empty for any failure."""

    provider_id: str
    status: ProviderStatus
    events: tuple[RawEvent, ...] = ()
    error: str | None = None
    elapsed_ms: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "events", tuple(self.events))
        if self.status.is_failure and self.events:
            raise ValueError("a failed provider result cannot carry events")

    @classmethod
    def success(
        cls,
        provider_id: str,
        events: list[RawEvent] | tuple[RawEvent, ...] = (),
        *,
        elapsed_ms: float = 0.0,
    ) -> ProviderResult:
        return cls(provider_id, ProviderStatus.OK, tuple(events), elapsed_ms=elapsed_ms)

    @classmethod
    def failure(
        cls,
        provider_id: str,
        status: ProviderStatus,
        error: str | None = None,
        *,
        elapsed_ms: float = 0.0,
    ) -> ProviderResult:
        if status is ProviderStatus.OK:
            raise ValueError("failure() requires a failure status")
        return cls(provider_id, status, (), error=error, elapsed_ms=elapsed_ms)

    @property
    def succeeded(self) -> bool:
        return self.status is ProviderStatus.OK
