"""
Application DI Container (dependency-injector).

Builds the aggregation pipeline from one settings mapping.

Usage::

    from unified_events.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({
        "ticketmaster_api_key": "...",
        "cache_dir": "~/.unified-events/cache",
    })

    orchestrator = container.orchestrator()

    # In tests, override any provider:
    container.adapters.override(providers.Object({"ticketmaster": fake_adapter}))
"""

from __future__ import annotations

import logging
from typing import Any

from dependency_injector import containers, providers

from unified_events.shared.config import Settings

logger = logging.getLogger(__name__)

MEMORY_CACHE_DIR = ":memory:"


def _create_settings(config: dict[str, Any] | None) -> Settings:
    return Settings.from_dict(config)


def _create_durable_store(settings: Settings) -> object:
    """File store under ``cache_dir``, or an in-process store for ``:memory:``."""
    from unified_events.infrastructure.cache import FileDurableStore, InMemoryDurableStore

    if settings.cache_dir == MEMORY_CACHE_DIR:
        return InMemoryDurableStore()
    return FileDurableStore(settings.cache_path)


def _create_cache(settings: Settings, durable: object) -> object:
    from unified_events.infrastructure.cache import LocalCache, TieredCache

    return TieredCache(
        LocalCache(max_size=settings.local_cache_size),
        durable,
        default_ttl=settings.static_ttl,
    )


def _create_governor(settings: Settings) -> object:
    from unified_events.shared.rate_limiter import RequestGovernor

    return RequestGovernor(settings.budgets)


def _create_geocoder(settings: Settings) -> object | None:
    """Mapbox first (when keyed), then Nominatim. None when geocoding is off."""
    from unified_events.infrastructure.geocoding import FallbackGeocoder, MapboxGeocoder, NominatimGeocoder

    if not settings.geocoding_enabled:
        return None
    resolvers: list[Any] = []
    if settings.mapbox_api_key:
        resolvers.append(MapboxGeocoder(settings.mapbox_api_key))
    resolvers.append(NominatimGeocoder(settings.user_agent))
    return FallbackGeocoder(resolvers)


def _create_adapters(settings: Settings, geocoder: object | None) -> object:
    from unified_events.infrastructure.sources import create_adapters

    adapters = create_adapters(settings, geocoder=geocoder)
    configured = [p for p, a in adapters.items() if a.configured]
    logger.info(f"Providers with credentials: {', '.join(configured) or 'none'}")
    return adapters


def _create_deduplicator(settings: Settings) -> object:
    from unified_events.application.search import DeduplicationEngine

    return DeduplicationEngine(threshold=settings.dedup_threshold)


def _create_assembler() -> object:
    from unified_events.application.search import ResultAssembler

    return ResultAssembler()


def _create_orchestrator(
    settings: Settings,
    adapters: Any,
    cache: Any,
    governor: Any,
    deduplicator: Any,
    assembler: Any,
    geocoder: Any,
) -> object:
    from unified_events.application.search import AggregationOrchestrator, OrchestratorConfig

    config = OrchestratorConfig(
        provider_timeout=settings.provider_timeout,
        aggregation_timeout=settings.aggregation_timeout,
        admission_wait=settings.admission_wait,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
        retry_max_delay=settings.retry_max_delay,
        static_ttl=settings.static_ttl,
        volatile_ttl=settings.volatile_ttl,
        merged_ttl=settings.merged_ttl,
        enabled_providers=list(settings.enabled_providers),
    )
    return AggregationOrchestrator(
        adapters,
        cache,
        governor,
        deduplicator,
        assembler,
        geocoder=geocoder,
        config=config,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the event aggregation pipeline.

    - ``settings``: validated ``Settings`` built from ``config``
    - ``cache``: two-tier cache (local TLRU + durable store)
    - ``governor``: per-provider request budgets
    - ``geocoder``: fallback geocoder chain
    - ``adapters``: one adapter per provider
    - ``orchestrator``: the aggregation entry point
    """

    config = providers.Configuration()

    settings = providers.Singleton(_create_settings, config)

    durable_store = providers.Singleton(_create_durable_store, settings)

    cache = providers.Singleton(_create_cache, settings, durable_store)

    governor = providers.Singleton(_create_governor, settings)

    geocoder = providers.Singleton(_create_geocoder, settings)

    adapters = providers.Singleton(_create_adapters, settings, geocoder)

    deduplicator = providers.Singleton(_create_deduplicator, settings)

    assembler = providers.Singleton(_create_assembler)

    orchestrator = providers.Singleton(
        _create_orchestrator,
        settings=settings,
        adapters=adapters,
        cache=cache,
        governor=governor,
        deduplicator=deduplicator,
        assembler=assembler,
        geocoder=geocoder,
    )


__all__ = ["ApplicationContainer", "MEMORY_CACHE_DIR"]
