"""Domain layer - canonical event and query types."""

from .entities import (
    PLACEHOLDER_IMAGE,
    AggregationMetadata,
    AggregationResult,
    Coordinates,
    Event,
    EventQuery,
    Organizer,
    PriceRange,
    ProviderId,
    ProviderOutcome,
    ProviderResponse,
    ProviderStatus,
    SortOrder,
    TicketLink,
)

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
    "ProviderStatus",
    "ProviderResponse",
    "ProviderOutcome",
    "AggregationMetadata",
    "AggregationResult",
]
