"""Tests for AggregatorSettings loading and validation."""

from __future__ import annotations

import logging

import pytest

from event_search.config import DEFAULT_RATE_LIMITS, AggregatorSettings
from event_search.core.exceptions import ConfigurationError


# ============================================================================
# Loading
# ============================================================================


class TestLoad:
    def test_defaults(self):
        settings = AggregatorSettings.load(env={})
        assert settings.ticketmaster_api_key is None
        assert settings.provider_timeout == 8.0
        assert settings.fanout_deadline == 10.0
        assert settings.cache_ttl == 300.0
        assert settings.rate_limits == DEFAULT_RATE_LIMITS

    def test_environment(self):
        settings = AggregatorSettings.load(
            env={
                "TICKETMASTER_API_KEY": "tm-key",
                "EVENTBRITE_TOKEN": "",
                "EVENT_SEARCH_CACHE_TTL": "120",
                "EVENT_SEARCH_CIRCUIT_THRESHOLD": "3",
                "EVENT_SEARCH_DISABLED_PROVIDERS": "eventbrite, rapidapi",
                "EVENT_SEARCH_RATE_LIMITING": "false",
            }
        )
        assert settings.ticketmaster_api_key == "tm-key"
        assert settings.eventbrite_token is None
        assert settings.cache_ttl == 120.0
        assert settings.circuit_failure_threshold == 3
        assert settings.disabled_providers == ["eventbrite", "rapidapi"]
        assert settings.rate_limiting_enabled is False

    def test_invalid_environment_value(self):
        with pytest.raises(ConfigurationError, match="EVENT_SEARCH_CACHE_TTL"):
            AggregatorSettings.load(env={"EVENT_SEARCH_CACHE_TTL": "five minutes"})

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "ticketmaster_api_key: from-file\n"
            "fanout_deadline: 6\n"
            "rate_limits:\n"
            "  ticketmaster: {rate: 2, per: 1}\n"
            "ranking:\n"
            "  image_points: 5\n",
            encoding="utf-8",
        )

        settings = AggregatorSettings.load(path, env={})

        assert settings.ticketmaster_api_key == "from-file"
        assert settings.fanout_deadline == 6
        assert settings.rate_limits["ticketmaster"] == (2.0, 1.0)
        assert settings.rate_limits["eventbrite"] == DEFAULT_RATE_LIMITS["eventbrite"]
        assert settings.ranking_config().image_points == 5

    def test_environment_overrides_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("cache_ttl: 600\n", encoding="utf-8")

        settings = AggregatorSettings.load(env={"EVENT_SEARCH_CONFIG": str(path), "EVENT_SEARCH_CACHE_TTL": "30"})

        assert settings.cache_ttl == 30.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read settings file"):
            AggregatorSettings.load(tmp_path / "absent.yaml", env={})

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            AggregatorSettings.load(path, env={})

    def test_unknown_keys_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            settings = AggregatorSettings.from_dict({"cache_ttl": 10, "colour": "blue"})
        assert settings.cache_ttl == 10
        assert "colour" in caplog.text


# ============================================================================
# Validation
# ============================================================================


class TestValidate:
    @pytest.mark.parametrize(
        "overrides,problem",
        [
            ({"fanout_deadline": 0}, "fanout_deadline must be positive"),
            ({"provider_timeout": -1}, "provider_timeout must be positive"),
            ({"cache_ttl": -5}, "cache TTLs must be >= 0"),
            ({"page_size": 0}, "page_size must be >= 1"),
            ({"circuit_failure_threshold": 0}, "circuit_failure_threshold must be >= 1"),
            ({"circuit_backoff_multiplier": 0.5}, "circuit_backoff_multiplier must be >= 1"),
            ({"rate_limits": {"ticketmaster": (0, 1)}}, "rate_limits.ticketmaster must be positive"),
            ({"ranking": {"bonus_points": 3}}, "unknown ranking settings: bonus_points"),
        ],
    )
    def test_rejects(self, overrides, problem):
        with pytest.raises(ConfigurationError, match=problem):
            AggregatorSettings(**overrides).validate()

    def test_reports_every_problem(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AggregatorSettings(fanout_deadline=0, page_size=0).validate()
        assert "fanout_deadline" in str(exc_info.value)
        assert "page_size" in str(exc_info.value)


# ============================================================================
# Derived configuration
# ============================================================================


class TestDerived:
    def test_guard_config_uses_provider_budget(self):
        settings = AggregatorSettings(provider_timeout=4.0, circuit_recovery_timeout=20.0)
        config = settings.guard_config("ticketmaster")
        assert config.call_timeout == 4.0
        assert config.recovery_timeout == 20.0
        assert (config.rate, config.per) == (5.0, 1.0)
        assert config.max_wait == 0.5

    def test_guard_config_unknown_provider_has_no_limiter(self):
        assert AggregatorSettings().guard_config("other").rate is None

    def test_guard_config_rate_limiting_disabled(self):
        assert AggregatorSettings(rate_limiting_enabled=False).guard_config("ticketmaster").rate is None

    def test_is_enabled(self):
        settings = AggregatorSettings(disabled_providers=["rapidapi"])
        assert settings.is_enabled("ticketmaster")
        assert not settings.is_enabled("rapidapi")
