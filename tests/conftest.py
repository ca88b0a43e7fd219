"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime, timezone

import pytest

from event_search.application.search.provider_guard import GuardConfig, GuardRegistry
from event_search.domain.entities.event import (
    Coordinates,
    PriceRange,
    ProviderResult,
    ProviderStatus,
    RawEvent,
)
from event_search.domain.entities.query import SearchQuery

# ============================================================
# Test Doubles
# ============================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory ProviderAdapter with scripted behavior."""

    def __init__(
        self,
        provider_id: str,
        events: Sequence[RawEvent] = (),
        *,
        status: ProviderStatus = ProviderStatus.OK,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.events = list(events)
        self.status = status
        self.delay = delay
        self.error = error
        self.calls = 0
        self.queries: list[SearchQuery] = []
        self.closed = False

    async def search(self, query: SearchQuery) -> ProviderResult:
        self.calls += 1
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.status is ProviderStatus.OK:
            return ProviderResult.success(self.provider_id, self.events)
        return ProviderResult.failure(self.provider_id, self.status, "scripted failure")

    async def test_connection(self) -> bool:
        return self.status is ProviderStatus.OK and self.error is None

    async def close(self) -> None:
        self.closed = True


def make_event(
    title: str = "Jazz Night",
    provider: str = "ticketmaster",
    *,
    day: tuple[int, int, int] = (2025, 6, 1),
    hour: int = 20,
    **overrides,
) -> RawEvent:
    """RawEvent with sensible defaults for tests."""
    values = {
        "title": title,
        "start_time": datetime(*day, hour, 0, tzinfo=timezone.utc),
        "provider": provider,
    }
    values.update(overrides)
    return RawEvent(**values)


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture
def clock():
    """Deterministic clock for breakers, limiters and caches."""
    return FakeClock()


@pytest.fixture
def guards(clock):
    """Guard registry without rate limiting and with a short call timeout."""
    return GuardRegistry(default=GuardConfig(call_timeout=1.0, rate=None), clock=clock)


@pytest.fixture
def nyc():
    """Lower Manhattan."""
    return Coordinates(40.71, -74.00)


@pytest.fixture
def jazz_query(nyc):
    return SearchQuery(keyword="jazz", coordinates=nyc, radius=25)


@pytest.fixture
def jazz_events(nyc):
    """The same concert as listed by two providers."""
    plain = make_event(
        "Jazz Night at The Blue Room",
        "provider_a",
        venue_name="The Blue Room",
        description="Live jazz every Saturday",
        price=PriceRange(min=20.0, max=35.0),
        ticket_urls=("https://a.example/tickets/1",),
        external_id="a-1",
    )
    rich = make_event(
        "The Jazz Night At Blue Room",
        "provider_b",
        venue_name="Blue Room",
        image_url="https://cdn.example/jazz-night.jpg",
        coordinates=Coordinates(40.7205, -73.9934),
        ticket_urls=("https://b.example/e/77",),
        external_id="b-77",
    )
    return plain, rich
