"""
Aggregation Orchestrator - one logical search fanned out to every provider.

Flow:
    query
      → (place name geocoded once, if no coordinates)
      → merged-result cache ("aggregate" namespace)
      → one task per provider:
            provider cache → governor admission → adapter call (timeout)
            → retries with backoff, each re-admitted
      → global deadline; late providers cancelled and reported as timeout
      → candidates seeded by provider priority, then arrival order
      → DeduplicationEngine → ResultAssembler → AggregationResult

Provider failures become status entries. The only exception that leaves
``aggregate`` is ``ConfigurationError`` (no usable providers).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from unified_events.domain.entities import (
    AggregationResult,
    Event,
    EventQuery,
    ProviderId,
    ProviderOutcome,
    ProviderResponse,
    ProviderStatus,
)
from unified_events.shared.async_utils import cancel_and_wait
from unified_events.shared.exceptions import (
    AggregationTimeoutError,
    ConfigurationError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)

from .assembler import ResultAssembler
from .deduplication import DeduplicationEngine

if TYPE_CHECKING:
    from unified_events.infrastructure.cache import TieredCache
    from unified_events.infrastructure.geocoding import Geocoder
    from unified_events.infrastructure.sources import BaseProviderAdapter
    from unified_events.shared.rate_limiter import RequestGovernor

logger = logging.getLogger(__name__)

MERGED_NAMESPACE = "aggregate"


def provider_namespace(provider_id: str) -> str:
    return f"provider:{provider_id}"


@dataclass
class OrchestratorConfig:
    """Timing, retry and TTL knobs of the orchestrator."""

    provider_timeout: float = 10.0
    aggregation_timeout: float = 15.0
    admission_wait: float = 2.0
    retry_attempts: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 5.0
    static_ttl: float = 3600.0
    volatile_ttl: float = 300.0
    merged_ttl: float = 300.0
    enabled_providers: list[str] = field(default_factory=lambda: [p.value for p in ProviderId])


@dataclass
class _ProviderRun:
    """Mutable bookkeeping for one provider task."""

    provider: str
    attempts: int = 0
    fetched: bool = False
    started: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


class AggregationOrchestrator:
    """
    Concurrent multi-provider search with caching, rate limiting and retries.

    Example:
        orchestrator = container.orchestrator()
        result = await orchestrator.aggregate(EventQuery(keyword="jazz", lat=30.27, lng=-97.74))
        for event in result.events:
            print(event.title, event.source)
    """

    def __init__(
        self,
        adapters: Mapping[str, BaseProviderAdapter],
        cache: TieredCache,
        governor: RequestGovernor,
        deduplicator: DeduplicationEngine | None = None,
        assembler: ResultAssembler | None = None,
        *,
        geocoder: Geocoder | None = None,
        config: OrchestratorConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._adapters = dict(adapters)
        self._cache = cache
        self._governor = governor
        self._deduplicator = deduplicator or DeduplicationEngine()
        self._assembler = assembler or ResultAssembler()
        self._geocoder = geocoder
        self._config = config or OrchestratorConfig()
        self._sleep = sleep

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    # =========================================================================
    # Public API
    # =========================================================================

    async def aggregate(
        self,
        query: EventQuery,
        enabled_providers: Iterable[str] | None = None,
    ) -> AggregationResult:
        """
        Run one aggregated search.

        Args:
            query: Canonical search parameters
            enabled_providers: Restrict the fan-out (default: configured list)

        Raises:
            ConfigurationError: no enabled provider has credentials
        """
        started = time.perf_counter()
        selected = self._select_providers(enabled_providers)
        runnable = [p for p in selected if self._adapters[p].configured]
        if not runnable:
            msg = f"No event providers are configured (enabled: {', '.join(selected) or 'none'})"
            raise ConfigurationError(msg)

        outcomes: dict[str, ProviderOutcome] = {
            p: ProviderOutcome(provider=p, status=ProviderStatus.SKIPPED, error="No credentials configured")
            for p in selected
            if p not in runnable
        }

        query = await self._locate(query)
        merged_key = query.cache_key(f"{MERGED_NAMESPACE}:{','.join(sorted(runnable))}")

        if not query.bypass_cache:
            cached = await self._cache.get(merged_key, namespace=MERGED_NAMESPACE)
            if cached is not None:
                result = self._from_merged_cache(cached, query, outcomes, started)
                if result is not None:
                    return result

        per_provider, timed_out = await self._fan_out(query, runnable, outcomes)

        # Stable seeding: provider priority, then arrival order within a provider.
        candidates: list[Event] = []
        for provider in sorted(per_provider, key=ProviderId.priority):
            candidates.extend(per_provider[provider])

        dedup = self._deduplicator.deduplicate(candidates)

        if all(outcomes[p].status is ProviderStatus.SUCCESS for p in runnable):
            await self._cache.set(
                merged_key,
                {
                    "events": [e.to_dict() for e in dedup.unique_events],
                    "total_before_dedup": len(candidates),
                    "providers": {p: outcomes[p].to_dict() for p in runnable},
                },
                self._config.merged_ttl,
                namespace=MERGED_NAMESPACE,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        result = self._assembler.assemble(
            dedup.unique_events,
            query,
            providers=self._ordered(outcomes, selected),
            total_before_dedup=len(candidates),
            cache_hit=False,
            timed_out=timed_out,
            elapsed_ms=elapsed_ms,
        )
        succeeded = sum(1 for o in outcomes.values() if o.status is ProviderStatus.SUCCESS)
        logger.info(
            f"Aggregated {len(candidates)} candidates from {succeeded}/{len(runnable)} providers "
            f"into {len(dedup.unique_events)} events ({result.total} after filters) in {elapsed_ms:.0f}ms"
        )
        if succeeded == 0:
            logger.warning(f"All providers failed: {result.errors}")
        return result

    async def clear_cache(self, provider_id: str | None = None) -> int:
        """Evict one provider's cached results (or the merged results)."""
        namespace = provider_namespace(provider_id) if provider_id else MERGED_NAMESPACE
        return await self._cache.clear_namespace(namespace)

    def stats(self) -> dict[str, Any]:
        return {
            "providers": {
                p: {
                    "configured": adapter.configured,
                    "circuit": adapter.circuit_breaker.state,
                    "budget": self._governor.stats(p),
                }
                for p, adapter in self._adapters.items()
            },
            "cache": self._cache.stats(),
        }

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()
        close = getattr(self._geocoder, "aclose", None)
        if close is not None:
            await close()

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def _fan_out(
        self,
        query: EventQuery,
        providers: list[str],
        outcomes: dict[str, ProviderOutcome],
    ) -> tuple[dict[str, list[Event]], bool]:
        runs = {p: _ProviderRun(provider=p) for p in providers}
        tasks = {
            p: asyncio.create_task(self._run_provider(runs[p], query), name=f"provider:{p}") for p in providers
        }
        done, pending = await asyncio.wait(tasks.values(), timeout=self._config.aggregation_timeout)

        timed_out = bool(pending)
        if pending:
            late = [p for p, task in tasks.items() if task in pending]
            logger.warning(str(AggregationTimeoutError(self._config.aggregation_timeout, late)))
            await cancel_and_wait(pending)

        per_provider: dict[str, list[Event]] = {}
        for provider, task in tasks.items():
            run = runs[provider]
            if task in pending or task.cancelled():
                outcomes[provider] = ProviderOutcome(
                    provider=provider,
                    status=ProviderStatus.TIMEOUT,
                    attempts=run.attempts,
                    elapsed_ms=run.elapsed_ms(),
                    error=f"No answer within {self._config.aggregation_timeout:.1f}s aggregation deadline",
                )
                continue
            if (error := task.exception()) is not None:
                logger.error(f"Unexpected failure in {provider} task: {error!r}")
                outcomes[provider] = ProviderOutcome(
                    provider=provider,
                    status=ProviderStatus.ERROR,
                    attempts=run.attempts,
                    elapsed_ms=run.elapsed_ms(),
                    error=f"{type(error).__name__}: {error}",
                )
                continue
            outcome, events = task.result()
            outcomes[provider] = outcome
            if outcome.status is ProviderStatus.SUCCESS:
                per_provider[provider] = events
        return per_provider, timed_out

    async def _run_provider(self, run: _ProviderRun, query: EventQuery) -> tuple[ProviderOutcome, list[Event]]:
        """Cache lookup, then admitted and retried adapter calls."""
        provider = run.provider
        adapter = self._adapters[provider]
        ttl = self._config.volatile_ttl if adapter.volatile else self._config.static_ttl
        key = query.cache_key(provider)
        namespace = provider_namespace(provider)

        async def fetch() -> list[dict[str, Any]]:
            run.fetched = True
            response = await self._call_with_retries(run, adapter, query)
            if response.error is not None:
                raise response.error
            return [e.to_dict() for e in response.events]

        try:
            if query.bypass_cache:
                payload = await fetch()
                await self._cache.set(key, payload, ttl, namespace=namespace)
            else:
                payload = await self._cache.get_or_compute(key, ttl, fetch, namespace=namespace)
        except ProviderError as e:
            return (
                ProviderOutcome(
                    provider=provider,
                    status=ProviderStatus.from_error(e),
                    attempts=run.attempts,
                    elapsed_ms=run.elapsed_ms(),
                    error=str(e),
                    retry_after=e.retry_after,
                ),
                [],
            )

        events = _events_from_payload(payload, provider)
        if not run.fetched:
            logger.debug(f"{provider}: cache hit ({len(events)} events)")
        return (
            ProviderOutcome(
                provider=provider,
                status=ProviderStatus.SUCCESS,
                event_count=len(events),
                cache_hit=not run.fetched,
                attempts=run.attempts,
                elapsed_ms=run.elapsed_ms(),
            ),
            events,
        )

    async def _call_with_retries(
        self,
        run: _ProviderRun,
        adapter: BaseProviderAdapter,
        query: EventQuery,
    ) -> ProviderResponse:
        """Call the adapter up to ``retry_attempts`` times; every attempt is admitted first."""
        provider = run.provider
        response = ProviderResponse()
        for attempt in range(self._config.retry_attempts):
            if not await self._governor.wait_for_admission(provider, self._config.admission_wait):
                return ProviderResponse(
                    error=ProviderRateLimitedError(
                        provider,
                        "Request budget exhausted",
                        retry_after=self._governor.seconds_until_reset(provider),
                    )
                )

            run.attempts += 1
            try:
                async with asyncio.timeout(self._config.provider_timeout):
                    response = await adapter.search(query)
            except TimeoutError:
                response = ProviderResponse(
                    error=ProviderTimeoutError(provider, f"No answer within {self._config.provider_timeout:.1f}s")
                )
            self._governor.record_result(provider, response.ok)

            error = response.error
            if error is None or not is_retryable_error(error) or attempt + 1 >= self._config.retry_attempts:
                return response

            delay = get_retry_delay(
                error, attempt, base_delay=self._config.retry_base_delay, max_delay=self._config.retry_max_delay
            )
            logger.info(f"{provider}: {error.kind.value} on attempt {attempt + 1}, retrying in {delay:.2f}s")
            await self._sleep(delay)
        return response

    # =========================================================================
    # Helpers
    # =========================================================================

    def _select_providers(self, enabled_providers: Iterable[str] | None) -> list[str]:
        requested = list(enabled_providers) if enabled_providers is not None else self._config.enabled_providers
        unknown = [p for p in requested if p not in self._adapters]
        if unknown:
            logger.warning(f"Ignoring unknown providers: {', '.join(unknown)}")
        selected = [p for p in requested if p in self._adapters]
        return sorted(dict.fromkeys(selected), key=ProviderId.priority)

    async def _locate(self, query: EventQuery) -> EventQuery:
        """Resolve a place name to coordinates once, before the fan-out."""
        if query.coordinates is not None or not query.place or self._geocoder is None:
            return query
        try:
            coords = await self._geocoder.resolve(query.place)
        except Exception as e:
            logger.warning(f"Geocoding {query.place!r} failed, searching by place name: {e}")
            return query
        if coords is None:
            logger.info(f"Could not geocode {query.place!r}, searching by place name")
            return query
        return query.with_coordinates(coords)

    def _from_merged_cache(
        self,
        cached: Any,
        query: EventQuery,
        outcomes: dict[str, ProviderOutcome],
        started: float,
    ) -> AggregationResult | None:
        try:
            events = [Event.from_dict(d) for d in cached["events"]]
            providers = {
                p: ProviderOutcome.from_dict(p, data) for p, data in cached.get("providers", {}).items()
            }
            total_before = int(cached.get("total_before_dedup", len(events)))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable merged cache entry: {e}")
            return None
        for outcome in providers.values():
            outcome.cache_hit = True
            outcome.attempts = 0
            outcome.elapsed_ms = 0.0
        merged = {**outcomes, **providers}
        logger.debug(f"Merged cache hit: {len(events)} events")
        return self._assembler.assemble(
            events,
            query,
            providers=self._ordered(merged, list(merged)),
            total_before_dedup=total_before,
            cache_hit=True,
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )

    @staticmethod
    def _ordered(outcomes: dict[str, ProviderOutcome], providers: list[str]) -> dict[str, ProviderOutcome]:
        return {p: outcomes[p] for p in sorted(providers, key=ProviderId.priority) if p in outcomes}


def _events_from_payload(payload: Any, provider: str) -> list[Event]:
    events: list[Event] = []
    for data in payload or []:
        try:
            events.append(Event.from_dict(data))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"{provider}: dropping unreadable cached event: {e}")
    return events
