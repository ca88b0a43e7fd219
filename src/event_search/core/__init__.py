"""
Core module for the Event Search Aggregator.

Provides:
- Unified exception hierarchy
- Rate limiter and circuit breaker for provider protection
- Geographic distance helpers
"""

from .async_utils import (
    # Fault tolerance
    CircuitBreaker,
    CircuitState,
    # Rate limiting
    RateLimiter,
)
from .exceptions import (
    AggregateFailureError,
    CacheError,
    CircuitOpenError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    # Base
    EventSearchError,
    InvalidQueryError,
    # Provider errors
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    # Validation errors
    ValidationError,
)
from .geo import haversine_distance

__all__ = [
    "AggregateFailureError",
    "CacheError",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "EventSearchError",
    "InvalidQueryError",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitedError",
    "RateLimiter",
    "ValidationError",
    "haversine_distance",
]
