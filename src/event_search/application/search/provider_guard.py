"""
Provider Guard - Circuit Breaker + Rate Limiter per Provider

Every provider call goes through its guard:

    admit (circuit breaker) → acquire (rate limiter) → call (with timeout)
        → classify ProviderResult → record outcome

Rejections never reach the provider; they come back as a ProviderResult with
status ``circuit_open`` or ``rate_limited``. Outcome classification:

    ok                      → success
    timeout / error         → failure
    rate_limited (upstream) → failure
    cancelled               → failure, then re-raised
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from event_search.core.async_utils import CircuitBreaker, CircuitState, Clock, RateLimiter
from event_search.core.exceptions import CircuitOpenError, ProviderTimeoutError, RateLimitedError
from event_search.domain.entities.event import ProviderResult, ProviderStatus

logger = logging.getLogger(__name__)


@dataclass
class GuardConfig:
    """Protection parameters for one provider."""

    call_timeout: float = 8.0
    # Circuit breaker
    failure_threshold: int = 5
    failure_window: float = 300.0
    recovery_timeout: float = 60.0
    backoff_multiplier: float = 2.0
    max_recovery_timeout: float = 600.0
    # Rate limiter (None disables it)
    rate: float | None = 5.0
    per: float = 1.0
    max_wait: float = 0.5


class ProviderGuard:
    """Wraps calls to a single provider with its breaker and limiter."""

    def __init__(
        self,
        provider_id: str,
        breaker: CircuitBreaker,
        limiter: RateLimiter | None = None,
        call_timeout: float = 8.0,
    ) -> None:
        self.provider_id = provider_id
        self.breaker = breaker
        self.limiter = limiter
        self.call_timeout = call_timeout

    @classmethod
    def from_config(cls, provider_id: str, config: GuardConfig, clock: Clock | None = None) -> ProviderGuard:
        clock = clock or time.monotonic
        breaker = CircuitBreaker(
            failure_threshold=config.failure_threshold,
            failure_window=config.failure_window,
            recovery_timeout=config.recovery_timeout,
            backoff_multiplier=config.backoff_multiplier,
            max_recovery_timeout=config.max_recovery_timeout,
            name=provider_id,
            clock=clock,
        )
        limiter = None
        if config.rate:
            limiter = RateLimiter(
                rate=config.rate,
                per=config.per,
                max_wait=config.max_wait,
                name=provider_id,
                clock=clock,
            )
        return cls(provider_id, breaker, limiter, call_timeout=config.call_timeout)

    async def call(self, func: Callable[[], Awaitable[ProviderResult]]) -> ProviderResult:
        """
        Run one provider call under protection.

        Args:
            func: Zero-argument coroutine factory performing the provider call.

        Returns:
            The provider's result, or a synthesized failure result.
        """
        start = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            trial = await self.breaker.admit()
        except CircuitOpenError as e:
            logger.debug(f"{self.provider_id}: skipped, {e}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.CIRCUIT_OPEN, str(e), elapsed_ms=elapsed_ms()
            )

        if self.limiter is not None:
            try:
                await self.limiter.acquire()
            except RateLimitedError as e:
                await self.breaker.release(trial)
                logger.warning(f"{self.provider_id}: {e}")
                return ProviderResult.failure(
                    self.provider_id, ProviderStatus.RATE_LIMITED, str(e), elapsed_ms=elapsed_ms()
                )
            except asyncio.CancelledError:
                await self.breaker.release(trial)
                raise

        try:
            result = await self._run(func)
        except ProviderTimeoutError as e:
            await self.breaker.record_failure(trial)
            logger.warning(f"Provider call timed out: {e}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.TIMEOUT, str(e), elapsed_ms=elapsed_ms()
            )
        except asyncio.CancelledError:
            await self.breaker.record_failure(trial)
            raise
        except Exception as e:
            await self.breaker.record_failure(trial)
            logger.warning(f"{self.provider_id}: unexpected error: {e!r}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.ERROR, repr(e), elapsed_ms=elapsed_ms()
            )

        if result.succeeded:
            await self.breaker.record_success(trial)
        else:
            await self.breaker.record_failure(trial)
        return result

    async def _run(self, func: Callable[[], Awaitable[ProviderResult]]) -> ProviderResult:
        try:
            return await asyncio.wait_for(func(), timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(self.provider_id, self.call_timeout) from e

    def snapshot(self) -> dict[str, Any]:
        """Current protection state, for health reporting."""
        info: dict[str, Any] = {
            "circuit": self.breaker.state.value,
            "failures": self.breaker.failure_count,
        }
        if self.breaker.state is not CircuitState.CLOSED:
            info["cooldown_seconds"] = self.breaker.cooldown
        if self.limiter is not None:
            info["tokens"] = round(self.limiter.available_tokens, 2)
        return info


@dataclass
class GuardRegistry:
    """
    Owns one ProviderGuard per provider id.

    Guards are created lazily from ``default`` merged with any per-provider
    override, and live as long as the registry (normally the process).
    """

    default: GuardConfig = field(default_factory=GuardConfig)
    overrides: dict[str, GuardConfig] = field(default_factory=dict)
    clock: Clock | None = None
    _guards: dict[str, ProviderGuard] = field(init=False, default_factory=dict)

    def get(self, provider_id: str) -> ProviderGuard:
        guard = self._guards.get(provider_id)
        if guard is None:
            config = self.overrides.get(provider_id, self.default)
            guard = ProviderGuard.from_config(provider_id, config, clock=self.clock)
            self._guards[provider_id] = guard
        return guard

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {pid: guard.snapshot() for pid, guard in self._guards.items()}
