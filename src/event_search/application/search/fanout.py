"""
FanoutCoordinator - Concurrent Provider Dispatch

Issues one search per enabled provider concurrently, each through its
ProviderGuard, and waits at most ``deadline`` seconds for the whole set.

Guarantees:
- A slow or failing provider never delays or fails the others.
- Calls still pending at the deadline are cancelled and reported as
  ``timeout``; anything they produce afterwards is discarded.
- Results come back in provider registration order, whatever the arrival
  order, so downstream merging is reproducible.
- When every provider failed, AggregateFailureError is raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from event_search.core.exceptions import AggregateFailureError, ConfigurationError
from event_search.domain.entities.event import ProviderResult, ProviderStatus, RawEvent

if TYPE_CHECKING:
    from event_search.application.search.provider_guard import GuardRegistry
    from event_search.domain.entities.query import SearchQuery
    from event_search.infrastructure.sources.base_client import ProviderAdapter

logger = logging.getLogger(__name__)

DEFAULT_FANOUT_DEADLINE = 10.0


@dataclass(frozen=True)
class FanoutOutcome:
    """Per-provider results of one fan-out, in registration order."""

    results: tuple[ProviderResult, ...]
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> list[ProviderResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> list[ProviderResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    def events(self) -> list[RawEvent]:
        """All raw events, grouped by provider in registration order."""
        return [event for result in self.results for event in result.events]

    def sources(self) -> dict[str, int]:
        """Raw event count per provider (zero for failed providers)."""
        return {r.provider_id: len(r.events) for r in self.results}

    def statuses(self) -> dict[str, str]:
        return {r.provider_id: r.status.value for r in self.results}


def _discard_late_result(task: asyncio.Task) -> None:
    # Retrieve the outcome so a late failure is not reported as "never retrieved"
    if not task.cancelled():
        task.exception()


class FanoutCoordinator:
    """
    Dispatches a query to every registered provider concurrently.

    Example:
        coordinator = FanoutCoordinator(providers, GuardRegistry(), deadline=10)
        outcome = await coordinator.fan_out(query)
        for result in outcome.results:
            print(result.provider_id, result.status, len(result.events))
    """

    def __init__(
        self,
        providers: Sequence[ProviderAdapter],
        guards: GuardRegistry,
        deadline: float = DEFAULT_FANOUT_DEADLINE,
    ) -> None:
        ids = [p.provider_id for p in providers]
        duplicates = sorted({pid for pid in ids if ids.count(pid) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate provider ids: {', '.join(duplicates)}")
        if deadline <= 0:
            raise ConfigurationError("Fan-out deadline must be positive")
        self._providers = list(providers)
        self._guards = guards
        self.deadline = deadline

    @property
    def provider_ids(self) -> list[str]:
        return [p.provider_id for p in self._providers]

    @property
    def providers(self) -> list[ProviderAdapter]:
        return list(self._providers)

    async def _guarded_search(self, provider: ProviderAdapter, query: SearchQuery) -> ProviderResult:
        guard = self._guards.get(provider.provider_id)
        return await guard.call(lambda: provider.search(query))

    async def fan_out(self, query: SearchQuery) -> FanoutOutcome:
        """
        Search every provider and collect the outcomes.

        Raises:
            AggregateFailureError: If no provider produced a successful result.
        """
        if not self._providers:
            raise AggregateFailureError({})

        start = time.perf_counter()
        tasks = {
            p.provider_id: asyncio.create_task(
                self._guarded_search(p, query), name=f"fanout:{p.provider_id}"
            )
            for p in self._providers
        }

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=self.deadline)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        for task in pending:
            task.cancel()
            task.add_done_callback(_discard_late_result)

        results = [self._collect(pid, task, pending) for pid, task in tasks.items()]
        elapsed_ms = (time.perf_counter() - start) * 1000
        outcome = FanoutOutcome(tuple(results), elapsed_ms=elapsed_ms)

        for result in outcome.failed:
            logger.warning(
                f"Provider {result.provider_id} failed ({result.status.value}): {result.error}"
            )
        logger.info(
            f"Fan-out: {len(outcome.succeeded)}/{len(results)} providers succeeded, "
            f"{len(outcome.events())} raw events in {elapsed_ms:.0f}ms"
        )

        if not outcome.succeeded:
            raise AggregateFailureError(outcome.statuses())
        return outcome

    def _collect(
        self,
        provider_id: str,
        task: asyncio.Task,
        pending: set[asyncio.Task],
    ) -> ProviderResult:
        if task in pending or task.cancelled():
            return ProviderResult.failure(
                provider_id,
                ProviderStatus.TIMEOUT,
                f"fan-out deadline of {self.deadline:.1f}s exceeded",
                elapsed_ms=self.deadline * 1000,
            )
        error = task.exception()
        if error is not None:
            logger.error(f"Provider {provider_id} raised outside its guard: {error!r}")
            return ProviderResult.failure(provider_id, ProviderStatus.ERROR, repr(error))
        result = task.result()
        if result.provider_id != provider_id:
            # Adapters must report under their registered id
            return ProviderResult(
                provider_id, result.status, result.events, result.error, result.elapsed_ms
            )
        return result
