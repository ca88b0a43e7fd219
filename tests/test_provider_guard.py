"""Tests for ProviderGuard and GuardRegistry."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeProvider, make_event
from event_search.application.search.provider_guard import GuardConfig, GuardRegistry, ProviderGuard
from event_search.core.async_utils import CircuitBreaker, CircuitState, RateLimiter
from event_search.core.exceptions import ProviderTimeoutError
from event_search.domain.entities.event import ProviderStatus
from event_search.domain.entities.query import SearchQuery

QUERY = SearchQuery(keyword="jazz")


def _guard(clock, **overrides) -> ProviderGuard:
    config = GuardConfig(call_timeout=1.0, failure_threshold=2, recovery_timeout=30.0, rate=None)
    for key, value in overrides.items():
        setattr(config, key, value)
    return ProviderGuard.from_config("ticketmaster", config, clock=clock)


# ============================================================================
# Outcome classification
# ============================================================================


class TestProviderGuardCall:
    @pytest.mark.asyncio
    async def test_success_passes_through(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", [make_event()])

        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.OK
        assert len(result.events) == 1
        assert guard.breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_result_counts_as_failure(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", status=ProviderStatus.ERROR)

        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.ERROR
        assert guard.breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self, clock):
        guard = _guard(clock, call_timeout=0.05)
        provider = FakeProvider("ticketmaster", [make_event()], delay=1.0)

        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.TIMEOUT
        assert result.events == ()
        assert result.error.startswith("ticketmaster: no response within")
        assert guard.breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_slow_call_raises_provider_timeout(self, clock):
        guard = _guard(clock, call_timeout=0.05)
        provider = FakeProvider("ticketmaster", [make_event()], delay=1.0)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await guard._run(lambda: provider.search(QUERY))

        assert exc_info.value.provider_id == "ticketmaster"
        assert exc_info.value.timeout == 0.05
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", error=RuntimeError("parser exploded"))

        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.ERROR
        assert "parser exploded" in result.error
        assert guard.breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_records_failure_and_propagates(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", delay=10.0)

        task = asyncio.create_task(guard.call(lambda: provider.search(QUERY)))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert guard.breaker.failure_count == 1


# ============================================================================
# Circuit breaker integration
# ============================================================================


class TestProviderGuardCircuit:
    @pytest.mark.asyncio
    async def test_open_circuit_skips_provider(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", status=ProviderStatus.ERROR)

        await guard.call(lambda: provider.search(QUERY))
        await guard.call(lambda: provider.search(QUERY))
        assert guard.breaker.state is CircuitState.OPEN

        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.CIRCUIT_OPEN
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_recovers_after_cooldown(self, clock):
        guard = _guard(clock)
        failing = FakeProvider("ticketmaster", status=ProviderStatus.ERROR)
        await guard.call(lambda: failing.search(QUERY))
        await guard.call(lambda: failing.search(QUERY))

        clock.advance(30)
        healthy = FakeProvider("ticketmaster", [make_event()])
        result = await guard.call(lambda: healthy.search(QUERY))

        assert result.succeeded
        assert guard.breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_trial_doubles_cooldown(self, clock):
        guard = _guard(clock)
        provider = FakeProvider("ticketmaster", status=ProviderStatus.TIMEOUT)
        await guard.call(lambda: provider.search(QUERY))
        await guard.call(lambda: provider.search(QUERY))

        clock.advance(30)
        await guard.call(lambda: provider.search(QUERY))

        assert guard.breaker.state is CircuitState.OPEN
        assert guard.breaker.cooldown == 60.0


# ============================================================================
# Rate limiter integration
# ============================================================================


class TestProviderGuardRateLimit:
    @pytest.mark.asyncio
    async def test_rejected_call_never_reaches_provider(self, clock):
        guard = _guard(clock, rate=1.0, per=60.0, max_wait=0.0)
        provider = FakeProvider("ticketmaster", [make_event()])

        first = await guard.call(lambda: provider.search(QUERY))
        second = await guard.call(lambda: provider.search(QUERY))

        assert first.succeeded
        assert second.status is ProviderStatus.RATE_LIMITED
        assert provider.calls == 1
        assert guard.breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_rate_limited_trial_is_released(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10.0, name="eventbrite", clock=clock)
        limiter = RateLimiter(rate=1.0, per=1000.0, name="eventbrite", clock=clock)
        guard = ProviderGuard("eventbrite", breaker, limiter)
        await limiter.acquire()
        await breaker.record_failure()
        clock.advance(10)

        provider = FakeProvider("eventbrite", [make_event(provider="eventbrite")])
        result = await guard.call(lambda: provider.search(QUERY))

        assert result.status is ProviderStatus.RATE_LIMITED
        assert breaker.state is CircuitState.HALF_OPEN
        assert await breaker.admit() is True


# ============================================================================
# Registry
# ============================================================================


class TestGuardRegistry:
    def test_guards_are_reused(self, clock):
        registry = GuardRegistry(clock=clock)
        assert registry.get("ticketmaster") is registry.get("ticketmaster")
        assert registry.get("ticketmaster") is not registry.get("eventbrite")

    def test_overrides(self, clock):
        registry = GuardRegistry(
            default=GuardConfig(rate=None),
            overrides={"ticketmaster": GuardConfig(rate=5.0, per=1.0, call_timeout=3.0)},
            clock=clock,
        )
        assert registry.get("ticketmaster").limiter is not None
        assert registry.get("ticketmaster").call_timeout == 3.0
        assert registry.get("rapidapi").limiter is None

    def test_snapshot(self, clock):
        registry = GuardRegistry(default=GuardConfig(rate=5.0), clock=clock)
        registry.get("ticketmaster")

        snapshot = registry.snapshot()

        assert snapshot == {"ticketmaster": {"circuit": "closed", "failures": 0, "tokens": 5.0}}

    @pytest.mark.asyncio
    async def test_snapshot_reports_cooldown_when_open(self, clock):
        registry = GuardRegistry(default=GuardConfig(failure_threshold=1, rate=None), clock=clock)
        guard = registry.get("rapidapi")
        await guard.breaker.record_failure()

        info = registry.snapshot()["rapidapi"]

        assert info["circuit"] == "open"
        assert info["cooldown_seconds"] == 60.0
