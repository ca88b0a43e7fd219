"""
Async Utilities for Provider Protection.

Provides:
- Rate limiting with token bucket and bounded queuing
- Circuit breaker with explicit CLOSED / OPEN / HALF_OPEN states

Both are safe under concurrent use from one event loop: every state change
happens while holding an asyncio.Lock. Time is read from an injectable clock
so tests can drive transitions without sleeping.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .exceptions import CircuitOpenError, RateLimitedError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _monotonic() -> Clock:
    return time.monotonic


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================

@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for provider calls.

    A caller that finds the bucket empty reserves the next token and waits
    for it, but never longer than ``max_wait`` seconds. When the wait would
    be longer the call is rejected with RateLimitedError instead of queuing.

    Example:
        limiter = RateLimiter(rate=5, per=1.0, max_wait=0.5)
        await limiter.acquire()
        await make_api_call()
    """
    rate: float = 5.0  # requests per period
    per: float = 1.0   # period in seconds
    max_wait: float = 0.0
    name: str = "provider"
    clock: Clock = field(default_factory=_monotonic, repr=False)
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        if self.rate <= 0 or self.per <= 0:
            raise ValueError("rate and per must be positive")
        self._tokens = self.rate
        self._last_update = self.clock()

    @property
    def available_tokens(self) -> float:
        """Tokens available right now (negative while callers hold reservations)."""
        return self._refilled(self.clock())

    def _refilled(self, now: float) -> float:
        elapsed = max(0.0, now - self._last_update)
        return min(self.rate, self._tokens + elapsed * (self.rate / self.per))

    async def acquire(self, max_wait: float | None = None) -> float:
        """
        Take one token, waiting at most ``max_wait`` seconds for it.

        Returns:
            Seconds waited.

        Raises:
            RateLimitedError: If the next token is further away than ``max_wait``.
        """
        limit = self.max_wait if max_wait is None else max_wait
        async with self._lock:
            now = self.clock()
            self._tokens = self._refilled(now) - 1
            self._last_update = now
            if self._tokens >= 0:
                return 0.0

            wait_time = -self._tokens * (self.per / self.rate)
            if wait_time > limit:
                # Give the reservation back, the caller is not going to wait
                self._tokens += 1
                raise RateLimitedError(
                    f"{self.name}: rate limit exceeded, next slot in {wait_time:.2f}s",
                    provider_id=self.name,
                    retry_after=wait_time,
                )

        logger.debug(f"Rate limit ({self.name}): waiting {wait_time:.2f}s")
        await asyncio.sleep(wait_time)
        return wait_time


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

class CircuitState(Enum):
    """State of a provider's circuit breaker."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for one provider.

    States:
    - CLOSED: Normal operation. Failures inside the trailing window are
      counted; reaching ``failure_threshold`` opens the circuit. A success
      forgives the oldest recorded failure.
    - OPEN: Calls are rejected with CircuitOpenError until the cooldown has
      elapsed. The first admission after that moves to HALF_OPEN.
    - HALF_OPEN: Exactly one trial call is in flight, everyone else is
      rejected. Trial success closes the circuit. Trial failure re-opens it
      with the cooldown multiplied by ``backoff_multiplier``.

    ``admit()`` returns whether the caller holds the half-open trial; that flag
    must be passed back to ``record_success`` / ``record_failure`` so that
    calls admitted before the circuit opened cannot close it.

    Example:
        breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        trial = await breaker.admit()
        try:
            result = await call()
        except Exception:
            await breaker.record_failure(trial)
            raise
        await breaker.record_success(trial)
    """
    failure_threshold: int = 5
    failure_window: float = 300.0
    recovery_timeout: float = 60.0
    backoff_multiplier: float = 2.0
    max_recovery_timeout: float = 600.0
    name: str = "provider"
    clock: Clock = field(default_factory=_monotonic, repr=False)

    _state: CircuitState = field(init=False, default=CircuitState.CLOSED)
    _failures: deque[float] = field(init=False, default_factory=deque)
    _opened_at: float | None = field(init=False, default=None)
    _cooldown: float = field(init=False)
    _trial_in_flight: bool = field(init=False, default=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._cooldown = self.recovery_timeout

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        """Failures currently counted inside the trailing window."""
        self._prune(self.clock())
        return len(self._failures)

    @property
    def cooldown(self) -> float:
        """Cooldown applied the next time (or currently) the circuit is open."""
        return self._cooldown

    def _prune(self, now: float) -> None:
        while self._failures and now - self._failures[0] > self.failure_window:
            self._failures.popleft()

    def _remaining_cooldown(self, now: float) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self._cooldown - now)

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._trial_in_flight = False
        logger.warning(
            f"Circuit breaker ({self.name}) opened for {self._cooldown:.1f}s"
        )

    async def admit(self) -> bool:
        """
        Ask permission for one call.

        Returns:
            True when the caller holds the half-open trial slot.

        Raises:
            CircuitOpenError: While the circuit is open, or half-open with the
                trial already taken.
        """
        async with self._lock:
            now = self.clock()
            if self._state is CircuitState.CLOSED:
                return False

            if self._state is CircuitState.OPEN:
                remaining = self._remaining_cooldown(now)
                if remaining > 0:
                    raise CircuitOpenError(
                        f"{self.name}: circuit breaker is open",
                        provider_id=self.name,
                        retry_after=remaining,
                    )
                self._state = CircuitState.HALF_OPEN
                logger.info(f"Circuit breaker ({self.name}) half-open, sending trial call")

            if self._trial_in_flight:
                raise CircuitOpenError(
                    f"{self.name}: circuit breaker is half-open (trial in progress)",
                    provider_id=self.name,
                    retry_after=self._cooldown,
                )
            self._trial_in_flight = True
            return True

    async def record_success(self, trial: bool = False) -> None:
        async with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                if not trial:
                    return
                self._state = CircuitState.CLOSED
                self._failures.clear()
                self._opened_at = None
                self._cooldown = self.recovery_timeout
                self._trial_in_flight = False
                logger.info(f"Circuit breaker ({self.name}) closed (recovered)")
            elif self._state is CircuitState.CLOSED and self._failures:
                self._failures.popleft()

    async def record_failure(self, trial: bool = False) -> None:
        async with self._lock:
            now = self.clock()
            if self._state is CircuitState.HALF_OPEN:
                if not trial:
                    return
                self._cooldown = min(
                    self._cooldown * self.backoff_multiplier,
                    self.max_recovery_timeout,
                )
                self._open(now)
            elif self._state is CircuitState.CLOSED:
                self._prune(now)
                self._failures.append(now)
                if len(self._failures) >= self.failure_threshold:
                    self._failures.clear()
                    self._open(now)

    async def release(self, trial: bool) -> None:
        """Give back an unused trial slot without recording an outcome."""
        if not trial:
            return
        async with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._trial_in_flight = False
