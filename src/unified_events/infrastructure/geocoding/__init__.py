"""Geocoding resolvers and the fallback chain."""

from unified_events.infrastructure.geocoding.resolvers import (
    FallbackGeocoder,
    Geocoder,
    MapboxGeocoder,
    NominatimGeocoder,
    is_placeholder_address,
)

__all__ = [
    "Geocoder",
    "FallbackGeocoder",
    "MapboxGeocoder",
    "NominatimGeocoder",
    "is_placeholder_address",
]
