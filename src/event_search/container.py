"""
Application DI Container (dependency-injector).

Wires settings, providers, protection, cache and pipeline into one
EventAggregator. Every service is a process-wide singleton: circuit breaker
state, rate limiter budgets and the result cache must outlive a request.

Usage::

    from event_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({"config_path": "settings.yaml"})

    aggregator = container.aggregator()

    # In tests, override any provider:
    container.settings.override(providers.Object(AggregatorSettings(...)))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dependency_injector import containers, providers

if TYPE_CHECKING:
    from event_search.application.search import (
        EventAggregator,
        FanoutCoordinator,
        GuardRegistry,
        RelevanceRanker,
    )
    from event_search.config import AggregatorSettings
    from event_search.infrastructure.cache import ResultCache
    from event_search.infrastructure.sources import BaseEventProvider

logger = logging.getLogger(__name__)


def _create_settings(config_path: str | None) -> AggregatorSettings:
    """Lazy factory for AggregatorSettings (YAML file + environment)."""
    from event_search.config import AggregatorSettings

    return AggregatorSettings.load(config_path)


def _create_event_providers(settings: AggregatorSettings) -> list[BaseEventProvider]:
    from event_search.infrastructure.sources import create_providers

    providers_ = create_providers(settings)
    logger.info(f"Enabled event providers: {[p.provider_id for p in providers_] or 'none'}")
    return providers_


def _create_guard_registry(settings: AggregatorSettings) -> GuardRegistry:
    from event_search.application.search import GuardRegistry

    return GuardRegistry(
        default=settings.guard_config("*"),
        overrides={pid: settings.guard_config(pid) for pid in settings.rate_limits},
    )


def _create_cache(settings: AggregatorSettings) -> ResultCache:
    from event_search.infrastructure.cache import InMemoryCacheBackend, ResultCache

    return ResultCache(
        InMemoryCacheBackend(max_size=settings.cache_max_size),
        default_ttl=settings.cache_ttl,
    )


def _create_coordinator(
    event_providers: list[BaseEventProvider],
    guards: GuardRegistry,
    settings: AggregatorSettings,
) -> FanoutCoordinator:
    from event_search.application.search import FanoutCoordinator

    return FanoutCoordinator(event_providers, guards, deadline=settings.fanout_deadline)


def _create_ranker(settings: AggregatorSettings) -> RelevanceRanker:
    from event_search.application.search import RelevanceRanker

    return RelevanceRanker(settings.ranking_config())


def _create_aggregator(
    coordinator: FanoutCoordinator,
    cache: ResultCache,
    ranker: RelevanceRanker,
    settings: AggregatorSettings,
) -> EventAggregator:
    from event_search.application.search import EventAggregator

    return EventAggregator(
        coordinator,
        cache,
        ranker=ranker,
        cache_ttl=settings.cache_ttl,
        partial_cache_ttl=settings.partial_cache_ttl,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the event search aggregator.

    Manages creation and lifecycle of all core services:
    - ``settings``: AggregatorSettings from ``config.config_path`` and the environment
    - ``event_providers``: enabled provider adapters, in registration order
    - ``guards``: circuit breaker + rate limiter per provider
    - ``cache``: query-signature keyed result cache
    - ``aggregator``: the search pipeline
    """

    config = providers.Configuration()

    settings = providers.Singleton(
        _create_settings,
        config_path=config.config_path,
    )

    event_providers = providers.Singleton(
        _create_event_providers,
        settings=settings,
    )

    guards = providers.Singleton(
        _create_guard_registry,
        settings=settings,
    )

    cache = providers.Singleton(
        _create_cache,
        settings=settings,
    )

    coordinator = providers.Singleton(
        _create_coordinator,
        event_providers=event_providers,
        guards=guards,
        settings=settings,
    )

    ranker = providers.Singleton(
        _create_ranker,
        settings=settings,
    )

    aggregator = providers.Singleton(
        _create_aggregator,
        coordinator=coordinator,
        cache=cache,
        ranker=ranker,
        settings=settings,
    )


__all__ = ["ApplicationContainer"]
