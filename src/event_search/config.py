"""
Aggregator Settings.

All tunables of the aggregation pipeline in one dataclass. Sources, lowest
to highest precedence:

1. Dataclass defaults
2. YAML file (``EVENT_SEARCH_CONFIG`` or an explicit path)
3. Environment variables

Example YAML::

    ticketmaster_api_key: "..."
    provider_timeout: 6
    fanout_deadline: 9
    cache_ttl: 300
    rate_limits:
      ticketmaster: {rate: 5, per: 1}
    ranking:
      distance_max_points: 60
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

import yaml

from event_search.application.search.provider_guard import GuardConfig
from event_search.application.search.relevance_ranker import RankingConfig
from event_search.core.exceptions import ConfigurationError, ErrorContext

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "EVENT_SEARCH_CONFIG"

# Per-provider request budgets: (requests, period seconds)
DEFAULT_RATE_LIMITS: dict[str, tuple[float, float]] = {
    "ticketmaster": (5.0, 1.0),
    "eventbrite": (1000.0, 3600.0),
    "rapidapi": (500.0, 3600.0),
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# Environment variable → (field name, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "TICKETMASTER_API_KEY": ("ticketmaster_api_key", str),
    "EVENTBRITE_TOKEN": ("eventbrite_token", str),
    "RAPIDAPI_KEY": ("rapidapi_key", str),
    "EVENT_SEARCH_PROVIDER_TIMEOUT": ("provider_timeout", float),
    "EVENT_SEARCH_FANOUT_DEADLINE": ("fanout_deadline", float),
    "EVENT_SEARCH_CACHE_TTL": ("cache_ttl", float),
    "EVENT_SEARCH_PARTIAL_CACHE_TTL": ("partial_cache_ttl", float),
    "EVENT_SEARCH_CACHE_SIZE": ("cache_max_size", int),
    "EVENT_SEARCH_PAGE_SIZE": ("page_size", int),
    "EVENT_SEARCH_DISABLED_PROVIDERS": ("disabled_providers", _parse_list),
    "EVENT_SEARCH_CIRCUIT_THRESHOLD": ("circuit_failure_threshold", int),
    "EVENT_SEARCH_CIRCUIT_COOLDOWN": ("circuit_recovery_timeout", float),
    "EVENT_SEARCH_RATE_LIMIT_WAIT": ("rate_limit_max_wait", float),
    "EVENT_SEARCH_RATE_LIMITING": ("rate_limiting_enabled", _parse_bool),
}


@dataclass
class AggregatorSettings:
    """Runtime configuration of the event search aggregator."""

    # Provider credentials (a provider without credentials is disabled)
    ticketmaster_api_key: str | None = None
    eventbrite_token: str | None = None
    rapidapi_key: str | None = None
    disabled_providers: list[str] = field(default_factory=list)

    # Time budgets (seconds)
    provider_timeout: float = 8.0
    fanout_deadline: float = 10.0

    # Result cache
    cache_ttl: float = 300.0
    partial_cache_ttl: float = 60.0
    cache_max_size: int = 512

    # Events requested from each provider per search
    page_size: int = 50

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_failure_window: float = 300.0
    circuit_recovery_timeout: float = 60.0
    circuit_backoff_multiplier: float = 2.0
    circuit_max_recovery_timeout: float = 600.0

    # Rate limiting
    rate_limiting_enabled: bool = True
    rate_limit_max_wait: float = 0.5
    rate_limits: dict[str, tuple[float, float]] = field(default_factory=lambda: dict(DEFAULT_RATE_LIMITS))

    # Ranking weight overrides (RankingConfig field names)
    ranking: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> AggregatorSettings:
        """
        Build settings from defaults, an optional YAML file and the environment.

        Raises:
            ConfigurationError: On an unreadable file or an invalid value.
        """
        env = os.environ if env is None else env
        values: dict[str, Any] = {}

        path = path or env.get(CONFIG_PATH_ENV)
        if path:
            values.update(cls._read_yaml(Path(path)))

        for var, (name, parser) in ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                values[name] = parser(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {var}: {raw!r}",
                    context=ErrorContext(operation="load_settings", input_value=raw),
                ) from e

        settings = cls.from_dict(values)
        settings.validate()
        return settings

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> AggregatorSettings:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")
        data = {k: v for k, v in values.items() if k in known}

        if "rate_limits" in data:
            merged = dict(DEFAULT_RATE_LIMITS)
            for provider_id, limit in (data["rate_limits"] or {}).items():
                if isinstance(limit, Mapping):
                    merged[provider_id] = (float(limit.get("rate", 0)), float(limit.get("per", 1.0)))
                else:
                    rate, per = limit
                    merged[provider_id] = (float(rate), float(per))
            data["rate_limits"] = merged
        return cls(**data)

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        try:
            with path.open(encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Cannot read settings file {path}: {e}",
                context=ErrorContext(operation="load_settings", input_value=str(path)),
            ) from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")
        logger.info(f"Loaded settings from {path}")
        return loaded

    def validate(self) -> None:
        """Raise ConfigurationError on values the pipeline cannot run with."""
        problems = []
        if self.provider_timeout <= 0:
            problems.append("provider_timeout must be positive")
        if self.fanout_deadline <= 0:
            problems.append("fanout_deadline must be positive")
        if self.cache_ttl < 0 or self.partial_cache_ttl < 0:
            problems.append("cache TTLs must be >= 0")
        if self.cache_max_size < 1:
            problems.append("cache_max_size must be >= 1")
        if self.page_size < 1:
            problems.append("page_size must be >= 1")
        if self.circuit_failure_threshold < 1:
            problems.append("circuit_failure_threshold must be >= 1")
        if self.circuit_recovery_timeout <= 0:
            problems.append("circuit_recovery_timeout must be positive")
        if self.circuit_backoff_multiplier < 1:
            problems.append("circuit_backoff_multiplier must be >= 1")
        for provider_id, (rate, per) in self.rate_limits.items():
            if rate <= 0 or per <= 0:
                problems.append(f"rate_limits.{provider_id} must be positive")
        unknown_weights = set(self.ranking) - set(RankingConfig.__dataclass_fields__)
        if unknown_weights:
            problems.append(f"unknown ranking settings: {', '.join(sorted(unknown_weights))}")
        if problems:
            raise ConfigurationError("Invalid settings: " + "; ".join(problems))

    def is_enabled(self, provider_id: str) -> bool:
        return provider_id not in self.disabled_providers

    def guard_config(self, provider_id: str) -> GuardConfig:
        """Protection parameters for one provider."""
        rate, per = self.rate_limits.get(provider_id, (None, 1.0))
        return GuardConfig(
            call_timeout=self.provider_timeout,
            failure_threshold=self.circuit_failure_threshold,
            failure_window=self.circuit_failure_window,
            recovery_timeout=self.circuit_recovery_timeout,
            backoff_multiplier=self.circuit_backoff_multiplier,
            max_recovery_timeout=self.circuit_max_recovery_timeout,
            rate=rate if self.rate_limiting_enabled else None,
            per=per,
            max_wait=self.rate_limit_max_wait,
        )

    def ranking_config(self) -> RankingConfig:
        return RankingConfig.from_dict(self.ranking)
