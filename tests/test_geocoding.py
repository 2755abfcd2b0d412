"""Tests for geocoding resolvers and the fallback chain."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from conftest import FakeClock

from unified_events.domain.entities import Coordinates
from unified_events.infrastructure.geocoding import (
    FallbackGeocoder,
    MapboxGeocoder,
    NominatimGeocoder,
    is_placeholder_address,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMapboxGeocoder:
    async def test_reads_lng_lat_center(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"features": [{"center": [-97.7431, 30.2672]}]})

        geocoder = MapboxGeocoder("pk.test", client=mock_client(handler))
        coords = await geocoder.resolve("Austin, TX", venue_hint="Stubb's")

        assert coords == Coordinates(30.2672, -97.7431)
        assert seen[0].url.params["access_token"] == "pk.test"
        assert seen[0].url.params["limit"] == "1"
        assert "Stubb" in seen[0].url.path

    async def test_no_features(self):
        geocoder = MapboxGeocoder("pk.test", client=mock_client(lambda r: httpx.Response(200, json={"features": []})))
        assert await geocoder.resolve("Nowhere") is None


class TestNominatimGeocoder:
    async def test_first_hit(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"lat": "40.7308", "lon": "-74.0007"}])

        geocoder = NominatimGeocoder("unified-events-tests/1.0", client=mock_client(handler))
        assert await geocoder.resolve("131 W 3rd St, New York") == Coordinates(40.7308, -74.0007)
        assert seen[0].headers["User-Agent"] == "unified-events-tests/1.0"
        assert seen[0].url.params["format"] == "json"

    async def test_empty_list(self):
        geocoder = NominatimGeocoder("ua", client=mock_client(lambda r: httpx.Response(200, json=[])))
        assert await geocoder.resolve("Nowhere") is None


class TestFallbackGeocoder:
    @pytest.mark.parametrize("address", ["", "TBA", "  Venue TBA ", "Online", None])
    def test_placeholder_addresses(self, address):
        assert is_placeholder_address(address)

    async def test_placeholder_skips_resolvers(self):
        resolver = AsyncMock()
        geocoder = FallbackGeocoder([resolver])
        assert await geocoder.resolve("TBA") is None
        resolver.resolve.assert_not_awaited()

    async def test_falls_through_to_second_resolver(self):
        primary = AsyncMock()
        primary.resolve.side_effect = RuntimeError("quota exceeded")
        secondary = AsyncMock()
        secondary.resolve.return_value = Coordinates(30.27, -97.74)

        geocoder = FallbackGeocoder([primary, secondary])
        assert await geocoder.resolve("Austin, TX") == Coordinates(30.27, -97.74)
        primary.resolve.assert_awaited_once()

    async def test_caches_hits_and_misses(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = None
        geocoder = FallbackGeocoder([resolver])

        assert await geocoder.resolve("Atlantis") is None
        assert await geocoder.resolve("atlantis") is None
        resolver.resolve.assert_awaited_once()

    async def test_cache_expires(self):
        clock = FakeClock()
        resolver = AsyncMock()
        resolver.resolve.return_value = Coordinates(1.0, 2.0)
        geocoder = FallbackGeocoder([resolver], cache_ttl=60, timer=clock)

        await geocoder.resolve("Somewhere")
        clock.advance(61)
        await geocoder.resolve("Somewhere")
        assert resolver.resolve.await_count == 2

    async def test_aclose_closes_resolvers(self):
        resolver = AsyncMock()
        await FallbackGeocoder([resolver]).aclose()
        resolver.close.assert_awaited_once()
