"""
Base Event Provider - Common HTTP search pattern for event sources.

Every concrete provider subclasses BaseEventProvider and supplies:
- `_build_params()`: translate a SearchQuery into request parameters
- `_parse_event()`: turn one payload item into a RawEvent
- `_extract_items()`: locate the list of event items in the payload

The base class owns the httpx.AsyncClient and maps every outcome onto a
ProviderResult, so ``search()`` never raises for ordinary failures:

    2xx + payload        → ok (malformed items skipped)
    404                  → ok, no events
    429                  → rate_limited
    other non-2xx        → error
    httpx timeout        → timeout
    transport failure    → error
    unparseable payload  → error

Adapters do not retry and do not cache; protection (circuit breaker, rate
limiting) and caching belong to the layers above.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Protocol, runtime_checkable

import httpx
from typing_extensions import Self

from event_search.domain.entities.event import Coordinates, ProviderResult, ProviderStatus, RawEvent
from event_search.domain.entities.query import SearchQuery

logger = logging.getLogger(__name__)


@runtime_checkable
class ProviderAdapter(Protocol):
    """What the fan-out needs from an event source."""

    provider_id: str

    async def search(self, query: SearchQuery) -> ProviderResult: ...

    async def test_connection(self) -> bool: ...


class BaseEventProvider:
    """
    Base class for HTTP event providers.

    Subclasses should set `provider_id`, `_service_name` and `_search_path`.

    Example:
        class MyProvider(BaseEventProvider):
            provider_id = "myapi"
            _service_name = "MyAPI"
            _search_path = "/events"

            def _build_params(self, query):
                return {"q": query.keyword}

            def _extract_items(self, payload):
                return payload.get("events", [])

            def _parse_event(self, item):
                return RawEvent(title=item["name"], provider=self.provider_id)
    """

    provider_id: str = "provider"
    _service_name: str = "Provider"
    _search_path: str = ""

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 8.0,
        headers: dict[str, str] | None = None,
        page_size: int = 50,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize base provider.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            headers: Default headers for all requests
            page_size: Maximum events requested per search
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers or {},
            transport=transport,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def enabled(self) -> bool:
        """False when the provider lacks the credentials it needs."""
        return True

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(self, query: SearchQuery) -> ProviderResult:
        """Search the provider. Ordinary failures come back as a failed result."""
        start = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            response = await self._execute_request(self._build_params(query))
        except httpx.TimeoutException as e:
            logger.warning(f"{self._service_name}: request timed out: {e!r}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.TIMEOUT, f"request timed out: {e!r}", elapsed_ms=elapsed_ms()
            )
        except httpx.RequestError as e:
            logger.warning(f"{self._service_name}: request failed: {e!r}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.ERROR, f"request failed: {e!r}", elapsed_ms=elapsed_ms()
            )

        expected = self._handle_expected_status(response)
        if expected is not _CONTINUE:
            return ProviderResult.success(self.provider_id, expected, elapsed_ms=elapsed_ms())

        if response.status_code == 429:
            logger.warning(f"{self._service_name}: rate limited by upstream (429)")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.RATE_LIMITED, "upstream returned 429", elapsed_ms=elapsed_ms()
            )
        if not response.is_success:
            logger.warning(
                f"{self._service_name} HTTP error {response.status_code}: {response.reason_phrase}"
            )
            return ProviderResult.failure(
                self.provider_id,
                ProviderStatus.ERROR,
                f"HTTP {response.status_code} {response.reason_phrase}",
                elapsed_ms=elapsed_ms(),
            )

        try:
            payload = self._parse_response(response)
            items = self._extract_items(payload)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.warning(f"{self._service_name}: malformed payload: {e!r}")
            return ProviderResult.failure(
                self.provider_id, ProviderStatus.ERROR, f"malformed payload: {e!r}", elapsed_ms=elapsed_ms()
            )

        events = self._parse_items(items)
        logger.debug(f"{self._service_name}: {len(events)} events in {elapsed_ms():.0f}ms")
        return ProviderResult.success(self.provider_id, events, elapsed_ms=elapsed_ms())

    async def test_connection(self) -> bool:
        """Run a minimal search and report whether the provider answered."""
        if not self.enabled:
            return False
        result = await self.search(SearchQuery(limit=1))
        return result.succeeded

    def _parse_items(self, items: list[Any]) -> list[RawEvent]:
        events: list[RawEvent] = []
        skipped = 0
        for item in items:
            try:
                event = self._parse_event(item)
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                skipped += 1
                logger.debug(f"{self._service_name}: skipping malformed event: {e!r}")
                continue
            if event is not None:
                events.append(event)
        if skipped:
            logger.info(f"{self._service_name}: skipped {skipped} malformed events")
        return events

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _build_params(self, query: SearchQuery) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_items(self, payload: Any) -> list[Any]:
        raise NotImplementedError

    def _parse_event(self, item: Any) -> RawEvent | None:
        raise NotImplementedError

    async def _execute_request(self, params: dict[str, Any]) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        clean = {k: v for k, v in params.items() if v is not None and v != ""}
        return await self._client.get(self._search_path, params=clean)

    def _handle_expected_status(self, response: httpx.Response) -> list[RawEvent] | object:
        """
        Handle expected non-200 status codes.

        Return a list of events to short-circuit, or the sentinel _CONTINUE
        to continue normal processing. Default: 404 means "no events".
        """
        if response.status_code == 404:
            return []
        return _CONTINUE

    def _parse_response(self, response: httpx.Response) -> Any:
        """Parse response body. Override for custom extraction logic."""
        return response.json()

    # -------------------------------------------------------------------------
    # Shared parsing helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_datetime(value: Any) -> datetime | None:
        """Parse an ISO-8601 timestamp; ``Z`` and missing offsets mean UTC."""
        if not value or not isinstance(value, str):
            return None
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _to_float(value: Any) -> float | None:
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @classmethod
    def _coordinates(cls, lat: Any, lng: Any) -> Coordinates | None:
        """Coordinates from loosely typed values; None when missing or out of range."""
        lat_f, lng_f = cls._to_float(lat), cls._to_float(lng)
        if lat_f is None or lng_f is None:
            return None
        try:
            return Coordinates(lat_f, lng_f)
        except ValueError:
            return None

    @staticmethod
    def _day_start(day: date) -> str:
        return datetime.combine(day, dt_time.min).strftime("%Y-%m-%dT%H:%M:%SZ")

    @staticmethod
    def _day_end(day: date) -> str:
        return datetime.combine(day, dt_time(23, 59, 59)).strftime("%Y-%m-%dT%H:%M:%SZ")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
