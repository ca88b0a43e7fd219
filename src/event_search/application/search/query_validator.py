"""
QueryValidator - Inbound Search Parameter Validation

Pre-flight validation of raw request parameters before any provider is
contacted. Raw values usually arrive as strings (query string), sometimes as
lists (repeated parameters) or already-typed values (programmatic callers).

Every problem is collected and reported as ``"<field>: <message>"``; the
first error does not stop validation.

Example:
    >>> validator = QueryValidator()
    >>> result = validator.validate({"keyword": "jazz", "radius": "500"})
    >>> result.is_valid
    False
    >>> result.errors
    ['radius: must be between 1 and 100']
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from event_search.core.exceptions import InvalidQueryError
from event_search.domain.entities.event import Coordinates
from event_search.domain.entities.query import (
    DEFAULT_LIMIT,
    DEFAULT_RADIUS,
    MAX_KEYWORD_LENGTH,
    MAX_LIMIT,
    MAX_RADIUS,
    MIN_RADIUS,
    SearchQuery,
    SortOrder,
)

MAX_CATEGORIES = 10

# Characters stripped from free-text keywords before they reach providers
_UNSAFE_KEYWORD_CHARS = re.compile(r"[<>\"']")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

KNOWN_PARAMETERS = frozenset(
    {
        "keyword",
        "q",
        "lat",
        "lng",
        "radius",
        "start_date",
        "end_date",
        "category",
        "categories",
        "price_min",
        "price_max",
        "limit",
        "offset",
        "sort",
        "force_refresh",
    }
)


@dataclass
class QueryValidationResult:
    """Result of search parameter validation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    query: SearchQuery | None = None

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def summary(self) -> str:
        """Human-readable summary."""
        if self.is_valid and not self.warnings:
            return "Search parameters are valid"
        parts = []
        if self.errors:
            parts.append(f"{len(self.errors)} error(s): {'; '.join(self.errors)}")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s): {'; '.join(self.warnings)}")
        return " | ".join(parts)


def _scalar(value: Any) -> Any:
    """Repeated query parameters arrive as lists; the first value wins."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


class QueryValidator:
    """
    Event search parameter validator.

    Converts a mapping of raw parameters into a SearchQuery, applying
    defaults and range checks.
    """

    def validate(self, params: Mapping[str, Any]) -> QueryValidationResult:
        """
        Validate raw search parameters.

        Args:
            params: Raw parameters (query-string values or typed values).

        Returns:
            QueryValidationResult; ``query`` is set only when valid.
        """
        errors: list[str] = []
        warnings: list[str] = []

        unknown = sorted(k for k in params if k not in KNOWN_PARAMETERS)
        if unknown:
            warnings.append(f"Ignored unknown parameter(s): {', '.join(unknown)}")

        keyword = self._parse_keyword(params, errors)
        coordinates = self._parse_coordinates(params, errors)

        radius = self._parse_float("radius", params.get("radius"), errors)
        if radius is None:
            radius = DEFAULT_RADIUS
        elif not MIN_RADIUS <= radius <= MAX_RADIUS:
            errors.append(f"radius: must be between {MIN_RADIUS:g} and {MAX_RADIUS:g}")

        start_date = self._parse_date("start_date", params.get("start_date"), errors)
        end_date = self._parse_date("end_date", params.get("end_date"), errors)
        if start_date and end_date and start_date > end_date:
            errors.append("end_date: must not be before start_date")

        categories = self._parse_categories(params, errors)

        price_min = self._parse_float("price_min", params.get("price_min"), errors)
        price_max = self._parse_float("price_max", params.get("price_max"), errors)
        if price_min is not None and price_min < 0:
            errors.append("price_min: must be >= 0")
        if price_max is not None and price_max < 0:
            errors.append("price_max: must be >= 0")
        if price_min is not None and price_max is not None and price_min > price_max:
            errors.append("price_max: must not be below price_min")

        limit = self._parse_int("limit", params.get("limit"), errors)
        if limit is None:
            limit = DEFAULT_LIMIT
        elif not 1 <= limit <= MAX_LIMIT:
            errors.append(f"limit: must be between 1 and {MAX_LIMIT}")

        offset = self._parse_int("offset", params.get("offset"), errors)
        if offset is None:
            offset = 0
        elif offset < 0:
            errors.append("offset: must be >= 0")

        sort = self._parse_sort(params.get("sort"), errors)
        force_refresh = self._parse_bool("force_refresh", params.get("force_refresh"), errors)

        if errors:
            return QueryValidationResult(is_valid=False, errors=errors, warnings=warnings)

        try:
            query = SearchQuery(
                keyword=keyword,
                coordinates=coordinates,
                radius=radius,
                start_date=start_date,
                end_date=end_date,
                categories=categories,
                price_min=price_min,
                price_max=price_max,
                limit=limit,
                offset=offset,
                sort=sort,
                force_refresh=force_refresh,
            )
        except InvalidQueryError as e:
            return QueryValidationResult(is_valid=False, errors=e.errors, warnings=warnings)

        return QueryValidationResult(is_valid=True, warnings=warnings, query=query)

    # -------------------------------------------------------------------------
    # Field parsers
    # -------------------------------------------------------------------------

    def _parse_keyword(self, params: Mapping[str, Any], errors: list[str]) -> str | None:
        raw = _scalar(params.get("keyword"))
        if raw is None:
            raw = _scalar(params.get("q"))
        if raw is None:
            return None
        text = _UNSAFE_KEYWORD_CHARS.sub("", str(raw)).strip()
        text = " ".join(text.split())
        if len(text) > MAX_KEYWORD_LENGTH:
            errors.append(f"keyword: must be at most {MAX_KEYWORD_LENGTH} characters")
        return text or None

    def _parse_coordinates(self, params: Mapping[str, Any], errors: list[str]) -> Coordinates | None:
        lat = self._parse_float("lat", params.get("lat"), errors)
        lng = self._parse_float("lng", params.get("lng"), errors)
        if lat is None and lng is None:
            return None
        if lat is None or lng is None:
            if "lat" in params and "lng" in params:
                # Malformed value already reported
                return None
            errors.append("lat: lat and lng must be provided together")
            return None

        valid = True
        if not -90.0 <= lat <= 90.0:
            errors.append("lat: must be between -90 and 90")
            valid = False
        if not -180.0 <= lng <= 180.0:
            errors.append("lng: must be between -180 and 180")
            valid = False
        return Coordinates(lat, lng) if valid else None

    def _parse_float(self, name: str, raw: Any, errors: list[str]) -> float | None:
        raw = _scalar(raw)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        if isinstance(raw, bool):
            errors.append(f"{name}: must be a number")
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            errors.append(f"{name}: must be a number")
            return None
        if not math.isfinite(value):
            errors.append(f"{name}: must be a finite number")
            return None
        return value

    def _parse_int(self, name: str, raw: Any, errors: list[str]) -> int | None:
        raw = _scalar(raw)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        if isinstance(raw, bool):
            errors.append(f"{name}: must be an integer")
            return None
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            return int(raw)
        try:
            return int(str(raw).strip())
        except ValueError:
            errors.append(f"{name}: must be an integer")
            return None

    def _parse_date(self, name: str, raw: Any, errors: list[str]) -> date | None:
        raw = _scalar(raw)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        text = str(raw).strip()
        try:
            if len(text) > 10:
                return datetime.fromisoformat(text).date()
            return date.fromisoformat(text)
        except ValueError:
            errors.append(f"{name}: must be an ISO date (YYYY-MM-DD)")
            return None

    def _parse_categories(self, params: Mapping[str, Any], errors: list[str]) -> frozenset[str]:
        raw = params.get("categories")
        if raw is None:
            raw = params.get("category")
        if raw is None:
            return frozenset()

        items = raw if isinstance(raw, (list, tuple, set, frozenset)) else [raw]
        values: set[str] = set()
        for item in items:
            for part in str(item).split(","):
                part = part.strip().lower()
                if part:
                    values.add(part)

        if "all" in values:
            return frozenset()
        if len(values) > MAX_CATEGORIES:
            errors.append(f"category: at most {MAX_CATEGORIES} categories allowed")
        return frozenset(values)

    def _parse_sort(self, raw: Any, errors: list[str]) -> SortOrder:
        raw = _scalar(raw)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return SortOrder.RELEVANCE
        if isinstance(raw, SortOrder):
            return raw
        try:
            return SortOrder(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in SortOrder)
            errors.append(f"sort: must be one of {allowed}")
            return SortOrder.RELEVANCE

    def _parse_bool(self, name: str, raw: Any, errors: list[str]) -> bool:
        raw = _scalar(raw)
        if raw is None:
            return False
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        errors.append(f"{name}: must be a boolean")
        return False


_default_validator = QueryValidator()


def validate_search_params(params: Mapping[str, Any]) -> SearchQuery:
    """
    Validate raw parameters and return the SearchQuery.

    Raises:
        InvalidQueryError: With every problem found.
    """
    result = _default_validator.validate(params)
    if not result.is_valid or result.query is None:
        raise InvalidQueryError(result.errors)
    return result.query
