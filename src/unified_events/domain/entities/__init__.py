"""Domain entities."""

from .aggregation import (
    AggregationMetadata,
    AggregationResult,
    ProviderOutcome,
    ProviderResponse,
    ProviderStatus,
)
from .event import PLACEHOLDER_IMAGE, Coordinates, Event, Organizer, PriceRange, ProviderId, TicketLink
from .query import DEFAULT_RADIUS_KM, EventQuery, SortOrder

__all__ = [
    "Event",
    "Coordinates",
    "PriceRange",
    "TicketLink",
    "Organizer",
    "ProviderId",
    "PLACEHOLDER_IMAGE",
    "EventQuery",
    "SortOrder",
    "DEFAULT_RADIUS_KM",
    "ProviderStatus",
    "ProviderResponse",
    "ProviderOutcome",
    "AggregationMetadata",
    "AggregationResult",
]
