"""
PredictHQ Events API adapter.

API Documentation: https://docs.predicthq.com/api/events/search-events

Authentication: ``Authorization: Bearer <token>``.
Listings are static (long cache TTL). PredictHQ publishes no prices or
images, so its records rarely win representative selection.
"""

from __future__ import annotations

from typing import Any

from unified_events.domain.entities import (
    Coordinates,
    Event,
    EventQuery,
    Organizer,
    ProviderId,
    TicketLink,
)
from unified_events.shared.exceptions import MalformedResponseError

from .base import BaseProviderAdapter
from .parsing import clean_text, dig, parse_datetime, parse_float, parse_local_datetime


def _coordinates(raw: dict[str, Any]) -> Coordinates | None:
    # GeoJSON order: [lng, lat].
    point = raw.get("location")
    if not (isinstance(point, list) and len(point) == 2):
        point = dig(raw, "geo", "geometry", "coordinates")
    if isinstance(point, list) and len(point) == 2 and not isinstance(point[0], list):
        return Coordinates.parse(point[1], point[0])
    return None


def _venue(raw: dict[str, Any]) -> dict[str, Any]:
    for entity in raw.get("entities") or []:
        if isinstance(entity, dict) and entity.get("type") == "venue":
            return entity
    return {}


def map_predicthq_event(raw: dict[str, Any]) -> Event | None:
    """Map one ``results[]`` record."""
    title = clean_text(raw.get("title"))
    external_id = raw.get("id")
    start = parse_local_datetime(raw.get("start_local")) or parse_datetime(raw.get("start"))
    if not title or not external_id or start is None:
        return None
    end = parse_local_datetime(raw.get("end_local")) or parse_datetime(raw.get("end"))
    duration = parse_float(raw.get("duration")) or 0.0
    # All-day listings start at midnight and last at least a day.
    time_known = not (start.hour == 0 and start.minute == 0 and duration >= 86399)

    venue = _venue(raw)
    address = clean_text(venue.get("formatted_address")) or clean_text(
        dig(raw, "geo", "address", "formatted_address")
    )
    brand = clean_text(raw.get("brand"))
    url = raw.get("url")
    category = clean_text(raw.get("category")) or "Event"
    labels = [str(label) for label in raw.get("labels") or [] if label]

    return Event(
        external_id=str(external_id),
        source=ProviderId.PREDICTHQ,
        title=title,
        start=start,
        end=end,
        start_time_known=time_known,
        description=clean_text(raw.get("description")) or "",
        category=category.replace("-", " ").title(),
        venue_name=clean_text(venue.get("name")),
        address=address,
        coordinates=_coordinates(raw),
        ticket_links=[TicketLink(source="PredictHQ", url=url)] if url else [],
        organizer=Organizer(name=brand) if brand else None,
        url=url,
        tags=labels,
    )


class PredictHQAdapter(BaseProviderAdapter):
    """PredictHQ ``/v1/events/``."""

    provider_id = ProviderId.PREDICTHQ.value
    base_url = "https://api.predicthq.com/v1"
    search_path = "/events/"
    volatile = False
    max_page_size = 50

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._credential}"}

    def build_params(self, query: EventQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query.keyword,
            "limit": self.max_page_size,
            "sort": "start",
        }
        if query.coordinates is not None:
            params["within"] = f"{max(1, round(query.radius_miles))}mi@{query.lat},{query.lng}"
        if query.start_date:
            params["active.gte"] = query.start_date.isoformat()
        if query.end_date:
            params["active.lte"] = query.end_date.isoformat()
        return params

    def extract_records(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict) or "results" not in payload:
            raise MalformedResponseError(self.provider_id, "Response has no 'results' list")
        return self._require_list(payload["results"], "results")

    def map_event(self, raw: dict[str, Any]) -> Event | None:
        return map_predicthq_event(raw)
