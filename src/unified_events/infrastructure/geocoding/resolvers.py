"""
Geocoding - address to coordinates, as a black-box lookup.

Resolvers:
- MapboxGeocoder: Mapbox Geocoding v5 (needs an access token)
- NominatimGeocoder: OpenStreetMap Nominatim (free, needs a User-Agent)

FallbackGeocoder tries them in order via ``ordered_fallback`` and caches
answers (including "not found") in a cachetools.TTLCache. Geocoding failures
never propagate: the worst case is "no coordinates".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from cachetools import TTLCache

from unified_events.domain.entities import Coordinates
from unified_events.infrastructure.http.client import BaseAPIClient
from unified_events.shared.async_utils import CircuitBreaker, ordered_fallback

logger = logging.getLogger(__name__)

# Addresses providers use when they have none.
PLACEHOLDER_ADDRESSES = frozenset({"address tba", "venue tba", "location tba", "tba", "tbd", "online", "virtual"})

DEFAULT_CACHE_TTL = 24 * 60 * 60


class Geocoder(Protocol):
    async def resolve(self, address: str, venue_hint: str | None = None) -> Coordinates | None: ...


def is_placeholder_address(address: str | None) -> bool:
    return not address or address.strip().lower() in PLACEHOLDER_ADDRESSES


def _search_text(address: str, venue_hint: str | None) -> str:
    if venue_hint and venue_hint.strip().lower() not in address.lower():
        return f"{venue_hint.strip()}, {address.strip()}"
    return address.strip()


class MapboxGeocoder(BaseAPIClient):
    """Mapbox Geocoding v5 ``mapbox.places``."""

    _service_name = "mapbox"

    def __init__(
        self,
        access_token: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(
            base_url="https://api.mapbox.com/geocoding/v5/mapbox.places",
            timeout=timeout,
            client=client,
            circuit_breaker=circuit_breaker,
        )
        self._token = access_token

    async def resolve(self, address: str, venue_hint: str | None = None) -> Coordinates | None:
        text = _search_text(address, venue_hint)
        data = await self._make_request(
            f"/{quote(text, safe='')}.json",
            params={"access_token": self._token, "limit": 1, "types": "poi,address,place"},
        )
        center = dig_first(data, "features", "center")
        if not center or len(center) != 2:
            return None
        lng, lat = center
        return Coordinates.parse(lat, lng)


class NominatimGeocoder(BaseAPIClient):
    """OpenStreetMap Nominatim ``/search``."""

    _service_name = "nominatim"

    def __init__(
        self,
        user_agent: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(
            base_url="https://nominatim.openstreetmap.org",
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            client=client,
            circuit_breaker=circuit_breaker,
        )

    async def resolve(self, address: str, venue_hint: str | None = None) -> Coordinates | None:
        data = await self._make_request(
            "/search",
            params={"q": _search_text(address, venue_hint), "format": "json", "limit": 1},
        )
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        return Coordinates.parse(data[0].get("lat"), data[0].get("lon"))


def dig_first(data: Any, list_key: str, field: str) -> Any:
    """``data[list_key][0][field]`` or None."""
    if not isinstance(data, dict):
        return None
    items = data.get(list_key)
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return None
    return items[0].get(field)


_MISS = object()


class FallbackGeocoder:
    """
    Ordered chain of resolvers with a shared answer cache.

    Example:
        geocoder = FallbackGeocoder([MapboxGeocoder(token), NominatimGeocoder("unified-events/0.1")])
        coords = await geocoder.resolve("123 Main St, Austin TX", venue_hint="Stubb's")
    """

    def __init__(
        self,
        resolvers: Sequence[Geocoder],
        *,
        cache_size: int = 1000,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolvers = list(resolvers)
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=cache_size, ttl=cache_ttl, timer=timer)

    @property
    def resolvers(self) -> list[Geocoder]:
        return list(self._resolvers)

    async def resolve(self, address: str, venue_hint: str | None = None) -> Coordinates | None:
        if is_placeholder_address(address):
            return None

        cache_key = f"{address}_{venue_hint or ''}".strip().lower()
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Geocoding cache hit: {cache_key}")
            return None if cached is _MISS else cached

        steps = [lambda r=resolver: r.resolve(address, venue_hint) for resolver in self._resolvers]
        index, coords = await ordered_fallback(steps, label="geocode")
        if coords is None:
            logger.debug(f"Geocoding found nothing for {address!r}")
        else:
            logger.debug(f"Geocoded {address!r} via resolver {index}: {coords.lat:.5f},{coords.lng:.5f}")
        self._cache[cache_key] = _MISS if coords is None else coords
        return coords

    async def aclose(self) -> None:
        for resolver in self._resolvers:
            close = getattr(resolver, "close", None)
            if close is not None:
                await close()
