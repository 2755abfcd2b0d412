"""
Unified Events - one search across several event-listing providers

Fans a single query out to Ticketmaster, Eventbrite, RapidAPI (real-time
events) and PredictHQ, normalizes every record into one ``Event`` shape,
merges records that describe the same real-world event, and returns one
filtered, sorted, paginated list with a per-provider status map.

Usage:
    from unified_events import ApplicationContainer, EventQuery

    container = ApplicationContainer()
    container.config.from_dict({"ticketmaster_api_key": "..."})

    result = await container.orchestrator().aggregate(
        EventQuery(keyword="jazz", place="Austin, TX", radius_km=25)
    )
    for event in result.events:
        print(f"{event.start:%Y-%m-%d} {event.title} ({event.source})")
"""

from .application.search import AggregationOrchestrator, DeduplicationEngine, ResultAssembler
from .container import ApplicationContainer
from .domain.entities import (
    AggregationResult,
    Coordinates,
    Event,
    EventQuery,
    PriceRange,
    ProviderId,
    ProviderOutcome,
    ProviderStatus,
    SortOrder,
)
from .shared import ConfigurationError, EventAggregationError, ProviderError, Settings

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "ApplicationContainer",
    "AggregationOrchestrator",
    "DeduplicationEngine",
    "ResultAssembler",
    "Settings",
    # Domain
    "Event",
    "EventQuery",
    "Coordinates",
    "PriceRange",
    "ProviderId",
    "SortOrder",
    "AggregationResult",
    "ProviderOutcome",
    "ProviderStatus",
    # Errors
    "EventAggregationError",
    "ProviderError",
    "ConfigurationError",
]
