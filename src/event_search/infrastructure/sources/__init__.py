"""
Event Sources - Provider adapters for external event APIs.

Available providers:
- TicketmasterProvider: Ticketmaster Discovery v2
- EventbriteProvider: Eventbrite v3
- RapidApiEventsProvider: Real-time events search on RapidAPI

Registration order below is the order used for fan-out results and
therefore for deduplication tie-breaking.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from event_search.infrastructure.sources.base_client import BaseEventProvider, ProviderAdapter
from event_search.infrastructure.sources.eventbrite import EventbriteProvider
from event_search.infrastructure.sources.rapidapi import RapidApiEventsProvider
from event_search.infrastructure.sources.ticketmaster import TicketmasterProvider

if TYPE_CHECKING:
    from event_search.config import AggregatorSettings

logger = logging.getLogger(__name__)


def create_providers(settings: AggregatorSettings) -> list[BaseEventProvider]:
    """
    Build every enabled provider, in registration order.

    A provider is skipped when it is listed in ``disabled_providers`` or
    lacks credentials.
    """
    factories: list[tuple[str, str | None, Callable[[], BaseEventProvider]]] = [
        (
            TicketmasterProvider.provider_id,
            settings.ticketmaster_api_key,
            lambda: TicketmasterProvider(
                api_key=settings.ticketmaster_api_key,
                timeout=settings.provider_timeout,
                page_size=settings.page_size,
            ),
        ),
        (
            EventbriteProvider.provider_id,
            settings.eventbrite_token,
            lambda: EventbriteProvider(
                token=settings.eventbrite_token,
                timeout=settings.provider_timeout,
                page_size=settings.page_size,
            ),
        ),
        (
            RapidApiEventsProvider.provider_id,
            settings.rapidapi_key,
            lambda: RapidApiEventsProvider(
                api_key=settings.rapidapi_key,
                timeout=settings.provider_timeout,
                page_size=settings.page_size,
            ),
        ),
    ]

    providers = []
    for provider_id, credential, factory in factories:
        if not credential:
            logger.info(f"Provider {provider_id} disabled: no credentials")
        elif not settings.is_enabled(provider_id):
            logger.info(f"Provider {provider_id} disabled by configuration")
        else:
            providers.append(factory())
    return providers


__all__ = [
    "BaseEventProvider",
    "EventbriteProvider",
    "ProviderAdapter",
    "RapidApiEventsProvider",
    "TicketmasterProvider",
    "create_providers",
]
