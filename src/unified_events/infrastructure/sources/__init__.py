"""
Provider adapters.

Each module pairs a pure ``map_<provider>_event`` function with an adapter
class; ``create_adapters`` builds one adapter per known provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from unified_events.infrastructure.sources.base import BaseProviderAdapter
from unified_events.infrastructure.sources.eventbrite import EventbriteAdapter, map_eventbrite_event
from unified_events.infrastructure.sources.predicthq import PredictHQAdapter, map_predicthq_event
from unified_events.infrastructure.sources.rapidapi import (
    RapidAPIAdapter,
    categorize_event,
    extract_price,
    map_rapidapi_event,
)
from unified_events.infrastructure.sources.ticketmaster import TicketmasterAdapter, map_ticketmaster_event
from unified_events.shared.async_utils import CircuitBreaker

if TYPE_CHECKING:
    from unified_events.infrastructure.geocoding import Geocoder
    from unified_events.shared.config import Settings

ADAPTER_CLASSES: dict[str, type[BaseProviderAdapter]] = {
    TicketmasterAdapter.provider_id: TicketmasterAdapter,
    EventbriteAdapter.provider_id: EventbriteAdapter,
    RapidAPIAdapter.provider_id: RapidAPIAdapter,
    PredictHQAdapter.provider_id: PredictHQAdapter,
}


def create_adapters(settings: Settings, geocoder: Geocoder | None = None) -> dict[str, BaseProviderAdapter]:
    """One adapter per known provider, each with its own circuit breaker."""
    return {
        provider_id: cls(
            settings.credential_for(provider_id),
            timeout=settings.provider_timeout,
            circuit_breaker=CircuitBreaker(
                name=provider_id,
                failure_threshold=settings.breaker_failure_threshold,
                recovery_timeout=settings.breaker_recovery_timeout,
            ),
            geocoder=geocoder,
        )
        for provider_id, cls in ADAPTER_CLASSES.items()
    }


__all__ = [
    "BaseProviderAdapter",
    "TicketmasterAdapter",
    "EventbriteAdapter",
    "RapidAPIAdapter",
    "PredictHQAdapter",
    "ADAPTER_CLASSES",
    "create_adapters",
    "map_ticketmaster_event",
    "map_eventbrite_event",
    "map_rapidapi_event",
    "map_predicthq_event",
    "categorize_event",
    "extract_price",
]
