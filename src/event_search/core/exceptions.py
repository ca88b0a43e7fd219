"""
Unified Exception Hierarchy for the Event Search Aggregator.

Exception Hierarchy:
    EventSearchError (base)
    ├── ProviderError            (failure isolated to one provider)
    │   ├── ProviderTimeoutError
    │   ├── RateLimitedError
    │   └── CircuitOpenError
    ├── ValidationError
    │   └── InvalidQueryError
    ├── AggregateFailureError    (every provider failed)
    ├── CacheError
    └── ConfigurationError

Provider-level errors never escape the fan-out: they are converted into a
ProviderResult status. Only ValidationError and AggregateFailureError reach
the caller of a search.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Recoverable, can continue
    ERROR = auto()        # Failed but can retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""
    PROVIDER = "provider"
    VALIDATION = "validation"
    AGGREGATE = "aggregate"
    CACHE = "cache"
    CONFIGURATION = "config"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to every error."""
    provider_id: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class EventSearchError(Exception):
    """
    Base exception for all event search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    - HTTP status mapping for the API layer
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.PROVIDER,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.provider_id:
            result["provider"] = self.context.provider_id
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderError(EventSearchError):
    """Failure of a single provider call. Never fatal for a search."""

    def __init__(
        self,
        message: str,
        *,
        provider_id: str | None = None,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        ctx = context or ErrorContext()
        if provider_id is not None:
            ctx = replace(ctx, provider_id=provider_id)
        super().__init__(
            message,
            context=ctx,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.PROVIDER,
            retryable=retryable,
        )

    @property
    def provider_id(self) -> str | None:
        return self.context.provider_id


class ProviderTimeoutError(ProviderError):
    """Raised when a provider does not answer within its time budget."""

    def __init__(
        self,
        provider_id: str,
        timeout: float,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            f"{provider_id}: no response within {timeout:.1f}s",
            provider_id=provider_id,
            context=context,
        )
        self.timeout = timeout
        self.severity = ErrorSeverity.TRANSIENT


class RateLimitedError(ProviderError):
    """Raised when a provider's request budget is exhausted."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider_id: str | None = None,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(
            context or ErrorContext(),
            retry_after=retry_after,
            suggestion="Wait and retry the request",
        )
        super().__init__(message, provider_id=provider_id, context=ctx)
        self.severity = ErrorSeverity.TRANSIENT

    @property
    def retry_after(self) -> float:
        return self.context.retry_after or 0.0


class CircuitOpenError(ProviderError):
    """Raised when a provider's circuit breaker rejects the call."""

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        *,
        provider_id: str | None = None,
        retry_after: float = 0.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(context or ErrorContext(), retry_after=retry_after)
        super().__init__(message, provider_id=provider_id, context=ctx)
        self.severity = ErrorSeverity.TRANSIENT

    @property
    def retry_after(self) -> float:
        return self.context.retry_after or 0.0


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(EventSearchError):
    """Base class for validation errors."""

    http_status = 400

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when search parameters fail validation. Carries every problem found."""

    def __init__(
        self,
        errors: list[str],
        *,
        context: ErrorContext | None = None,
    ) -> None:
        self.errors = list(errors)
        ctx = context or ErrorContext(
            suggestion="Fix the listed parameters and retry",
        )
        super().__init__(f"Invalid search parameters: {'; '.join(self.errors)}", context=ctx)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = self.errors
        return result


# =============================================================================
# Aggregate / Infrastructure Errors
# =============================================================================

class AggregateFailureError(EventSearchError):
    """Raised when every enabled provider failed for one search."""

    http_status = 503

    def __init__(
        self,
        provider_errors: dict[str, str],
        *,
        context: ErrorContext | None = None,
    ) -> None:
        self.provider_errors = dict(provider_errors)
        if self.provider_errors:
            detail = ", ".join(f"{pid}={status}" for pid, status in self.provider_errors.items())
            message = f"All event providers failed ({detail})"
        else:
            message = "No event providers are enabled"
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.AGGREGATE,
            retryable=True,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["providers"] = self.provider_errors
        return result


class CacheError(EventSearchError):
    """Raised by cache backends. Callers treat it as a miss."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CACHE,
            retryable=True,
        )


class ConfigurationError(EventSearchError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )
