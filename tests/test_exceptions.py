"""Tests for the exception hierarchy."""

import pytest

from event_search.core.exceptions import (
    AggregateFailureError,
    CacheError,
    CircuitOpenError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    EventSearchError,
    InvalidQueryError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ProviderTimeoutError("ticketmaster", 8.0),
            RateLimitedError(provider_id="eventbrite"),
            CircuitOpenError(provider_id="rapidapi"),
        ],
    )
    def test_provider_errors(self, error):
        assert isinstance(error, ProviderError)
        assert isinstance(error, EventSearchError)
        assert error.category is ErrorCategory.PROVIDER
        assert error.retryable is True

    def test_invalid_query_is_validation_error(self):
        error = InvalidQueryError(["radius: must be between 1 and 100"])
        assert isinstance(error, ValidationError)
        assert error.http_status == 400
        assert error.retryable is False

    def test_base_status_is_500(self):
        assert EventSearchError("boom").http_status == 500
        assert CacheError("down").http_status == 500


class TestProviderErrors:
    def test_timeout_message(self):
        error = ProviderTimeoutError("ticketmaster", 8.0)
        assert str(error) == "ticketmaster: no response within 8.0s"
        assert error.provider_id == "ticketmaster"
        assert error.timeout == 8.0
        assert error.severity is ErrorSeverity.TRANSIENT

    def test_rate_limited_carries_retry_after(self):
        error = RateLimitedError("slow down", provider_id="eventbrite", retry_after=2.5)
        assert error.retry_after == 2.5
        data = error.to_dict()
        assert data["retry_after_seconds"] == 2.5
        assert data["provider"] == "eventbrite"
        assert "suggestion" in data

    def test_circuit_open_keeps_existing_context(self):
        ctx = ErrorContext(operation="search")
        error = CircuitOpenError(provider_id="rapidapi", retry_after=30.0, context=ctx)
        assert error.context.operation == "search"
        assert error.context.provider_id == "rapidapi"
        assert error.retry_after == 30.0


class TestAggregateFailure:
    def test_message_lists_statuses(self):
        error = AggregateFailureError({"ticketmaster": "timeout", "eventbrite": "error"})
        assert str(error) == "All event providers failed (ticketmaster=timeout, eventbrite=error)"
        assert error.http_status == 503
        assert error.category is ErrorCategory.AGGREGATE

    def test_no_providers(self):
        error = AggregateFailureError({})
        assert str(error) == "No event providers are enabled"

    def test_to_dict(self):
        data = AggregateFailureError({"rapidapi": "circuit_open"}).to_dict()
        assert data["category"] == "aggregate"
        assert data["providers"] == {"rapidapi": "circuit_open"}
        assert data["retryable"] is True


class TestToDict:
    def test_invalid_query_lists_errors(self):
        error = InvalidQueryError(["lat: must be a number", "limit: must be an integer"])
        data = error.to_dict()
        assert data["errors"] == ["lat: must be a number", "limit: must be an integer"]
        assert data["severity"] == "warning"
        assert "lat: must be a number" in data["error"]

    def test_configuration_error_is_critical(self):
        data = ConfigurationError("bad settings").to_dict()
        assert data == {
            "error": "bad settings",
            "category": "config",
            "severity": "critical",
            "retryable": False,
        }
