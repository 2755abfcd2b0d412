"""Tests for the DI container wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from conftest import make_event
from dependency_injector import providers

from unified_events.application.search import AggregationOrchestrator
from unified_events.container import MEMORY_CACHE_DIR, ApplicationContainer
from unified_events.domain.entities import EventQuery, ProviderResponse
from unified_events.infrastructure.cache import FileDurableStore, InMemoryDurableStore
from unified_events.infrastructure.geocoding import FallbackGeocoder, MapboxGeocoder, NominatimGeocoder


def make_container(**config) -> ApplicationContainer:
    container = ApplicationContainer()
    container.config.from_dict({"cache_dir": MEMORY_CACHE_DIR, "geocoding_enabled": False, **config})
    return container


# ============================================================================
# Wiring
# ============================================================================


class TestApplicationContainer:
    """The container builds one pipeline from one settings mapping."""

    def test_settings_from_config(self) -> None:
        container = make_container(ticketmaster_api_key="tm-key", dedup_threshold=0.9)
        settings = container.settings()
        assert settings.ticketmaster_api_key == "tm-key"
        assert settings.dedup_threshold == 0.9

    def test_orchestrator_singleton(self) -> None:
        container = make_container()
        o1 = container.orchestrator()
        o2 = container.orchestrator()
        assert isinstance(o1, AggregationOrchestrator)
        assert o1 is o2

    def test_memory_cache_dir(self) -> None:
        assert isinstance(make_container().durable_store(), InMemoryDurableStore)

    def test_file_cache_dir(self, tmp_path) -> None:
        store = make_container(cache_dir=str(tmp_path)).durable_store()
        assert isinstance(store, FileDurableStore)
        assert store.directory == tmp_path

    def test_adapters_follow_credentials(self) -> None:
        adapters = make_container(ticketmaster_api_key="tm-key", rapidapi_key="r-key").adapters()
        assert set(adapters) == {"ticketmaster", "eventbrite", "rapidapi", "predicthq"}
        assert adapters["ticketmaster"].configured
        assert adapters["rapidapi"].configured
        assert not adapters["eventbrite"].configured

    def test_orchestrator_settings(self) -> None:
        container = make_container(provider_timeout=3.0, retry_attempts=4, enabled_providers=["eventbrite"])
        config = container.orchestrator().config
        assert config.provider_timeout == 3.0
        assert config.retry_attempts == 4
        assert config.enabled_providers == ["eventbrite"]

    def test_deduplicator_threshold(self) -> None:
        assert make_container(dedup_threshold=0.7).deduplicator().threshold == 0.7


class TestGeocoderWiring:
    def test_disabled(self) -> None:
        assert make_container().geocoder() is None

    def test_nominatim_only_without_key(self) -> None:
        geocoder = make_container(geocoding_enabled=True).geocoder()
        assert isinstance(geocoder, FallbackGeocoder)
        assert [type(r) for r in geocoder.resolvers] == [NominatimGeocoder]

    def test_mapbox_first_when_keyed(self) -> None:
        geocoder = make_container(geocoding_enabled=True, mapbox_api_key="pk.test").geocoder()
        assert [type(r) for r in geocoder.resolvers] == [MapboxGeocoder, NominatimGeocoder]


# ============================================================================
# Overrides
# ============================================================================


class TestOverrides:
    def test_override_adapters(self) -> None:
        container = make_container()
        fake = {"ticketmaster": MagicMock()}
        container.adapters.override(providers.Object(fake))
        try:
            assert container.adapters() is fake
        finally:
            container.adapters.reset_override()
        assert container.adapters() is not fake

    def test_reset_singleton(self) -> None:
        container = make_container()
        first = container.cache()
        container.cache.reset()
        assert container.cache() is not first

    async def test_aggregate_through_container(self) -> None:
        adapter = MagicMock(configured=True, volatile=False)
        adapter.search = AsyncMock(return_value=ProviderResponse(events=[make_event()]))
        adapter.close = AsyncMock()

        container = make_container()
        container.adapters.override(providers.Object({"ticketmaster": adapter}))
        orchestrator = container.orchestrator()
        try:
            result = await orchestrator.aggregate(EventQuery(keyword="jazz"))
        finally:
            await orchestrator.aclose()

        assert [e.id for e in result.events] == ["ticketmaster:evt-1"]
        assert list(result.providers) == ["ticketmaster"]
        adapter.close.assert_awaited_once()
