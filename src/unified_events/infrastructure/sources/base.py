"""
Provider Adapter base - one upstream listing API behind a uniform ``search``.

Subclasses supply:
- ``provider_id`` / ``base_url`` / ``search_path``
- ``build_params(query)``: canonical query to upstream parameters
- ``auth_headers()``: credential injection (query-param auth goes in params)
- ``extract_records(payload)``: pull the raw record list out of the body
- ``map_event(raw)``: pure upstream-record to ``Event`` mapping

``search`` never raises ``ProviderError``: failures come back as
``ProviderResponse(events=[], error=...)``. Cancellation propagates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from unified_events.domain.entities import Event, EventQuery, ProviderResponse
from unified_events.infrastructure.http.client import BaseAPIClient
from unified_events.shared.async_utils import CircuitBreaker
from unified_events.shared.exceptions import (
    InvalidParameterError,
    MalformedResponseError,
    ProviderAuthError,
    ProviderError,
)

if TYPE_CHECKING:
    from unified_events.infrastructure.geocoding import Geocoder

logger = logging.getLogger(__name__)

# Upper bound on geocoder lookups per provider response.
MAX_GEOCODE_BACKFILL = 10


class BaseProviderAdapter(BaseAPIClient):
    """Common search flow for all listing providers."""

    provider_id: ClassVar[str] = "provider"
    base_url: ClassVar[str] = ""
    search_path: ClassVar[str] = ""
    # Volatile listings change quickly and get the short cache TTL.
    volatile: ClassVar[bool] = False
    # Upstream page size; independent of the query's offset/limit.
    max_page_size: ClassVar[int] = 50

    def __init__(
        self,
        credential: str | None,
        *,
        timeout: float = 10.0,
        circuit_breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
        geocoder: Geocoder | None = None,
    ) -> None:
        self._service_name = self.provider_id
        super().__init__(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            circuit_breaker=circuit_breaker,
            client=client,
        )
        self._credential = credential.strip() if credential else None
        self._geocoder = geocoder

    @property
    def configured(self) -> bool:
        return bool(self._credential)

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    def build_params(self, query: EventQuery) -> dict[str, Any]:
        raise NotImplementedError

    def auth_headers(self) -> dict[str, str]:
        return {}

    def extract_records(self, payload: Any) -> list[dict[str, Any]]:
        raise NotImplementedError

    def map_event(self, raw: dict[str, Any]) -> Event | None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Search flow
    # ------------------------------------------------------------------

    async def search(self, query: EventQuery) -> ProviderResponse:
        """One upstream call. Failures are returned, not raised."""
        if not self.configured:
            return ProviderResponse(error=ProviderAuthError(self.provider_id, "No credentials configured"))

        try:
            payload = await self._make_request(
                self.search_path,
                params=self.build_params(query),
                headers=self.auth_headers(),
            )
            records = self.extract_records(payload)
        except ProviderError as e:
            logger.warning(f"{self.provider_id} search failed ({e.kind.value}): {e}")
            return ProviderResponse(error=e)

        events, dropped = self.parse_events(records)
        if self._geocoder is not None:
            await self._backfill_coordinates(events)

        logger.info(f"{self.provider_id}: {len(events)} events mapped, {dropped} dropped")
        return ProviderResponse(events=events, dropped=dropped)

    def parse_events(self, records: list[dict[str, Any]]) -> tuple[list[Event], int]:
        """Map every record; unusable ones are dropped individually."""
        events: list[Event] = []
        dropped = 0
        for raw in records:
            try:
                event = self.map_event(raw) if isinstance(raw, dict) else None
            except (InvalidParameterError, KeyError, TypeError, ValueError, AttributeError) as e:
                logger.debug(f"{self.provider_id}: dropping record: {e}")
                event = None
            if event is None:
                dropped += 1
            else:
                events.append(event)
        return events, dropped

    def _require_list(self, value: Any, what: str) -> list[dict[str, Any]]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise MalformedResponseError(self.provider_id, f"Expected a list for {what}, got {type(value).__name__}")
        return value

    async def _backfill_coordinates(self, events: list[Event]) -> None:
        """Geocode addresses of events that came without coordinates."""
        missing = [e for e in events if e.coordinates is None and e.address][:MAX_GEOCODE_BACKFILL]
        if not missing:
            return
        results = await asyncio.gather(
            *(self._geocoder.resolve(e.address, venue_hint=e.venue_name) for e in missing),
            return_exceptions=True,
        )
        filled = 0
        for event, coords in zip(missing, results, strict=True):
            if isinstance(coords, BaseException):
                logger.debug(f"Geocoding failed for {event.id}: {coords}")
                continue
            if coords is not None:
                event.coordinates = coords
                filled += 1
        logger.debug(f"{self.provider_id}: geocoded {filled}/{len(missing)} addresses")
