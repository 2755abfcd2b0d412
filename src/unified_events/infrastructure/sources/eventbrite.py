"""
Eventbrite API v3 adapter.

Authentication: ``Authorization: Bearer <token>``.
Listings are static (long cache TTL).
"""

from __future__ import annotations

from datetime import datetime
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
from .parsing import clean_text, dig, parse_datetime, parse_local_datetime, price_range, unique_urls


def _start(raw: dict[str, Any]) -> datetime | None:
    return parse_local_datetime(dig(raw, "start", "local")) or parse_datetime(dig(raw, "start", "utc"))


def map_eventbrite_event(raw: dict[str, Any]) -> Event | None:
    """Map one ``events[]`` record (with ``venue``, ``organizer``, ``ticket_availability`` expanded)."""
    name = raw.get("name")
    title = clean_text(name.get("text") if isinstance(name, dict) else name)
    external_id = raw.get("id")
    start = _start(raw)
    if not title or not external_id or start is None:
        return None
    end = parse_local_datetime(dig(raw, "end", "local")) or parse_datetime(dig(raw, "end", "utc"))

    venue = raw.get("venue") if isinstance(raw.get("venue"), dict) else {}
    address_parts = [
        clean_text(dig(venue, "address", key)) for key in ("address_1", "city", "region", "country")
    ]
    address = ", ".join(p for p in address_parts if p) or clean_text(
        dig(venue, "address", "localized_address_display")
    )
    coordinates = Coordinates.parse(
        venue.get("latitude") or dig(venue, "address", "latitude"),
        venue.get("longitude") or dig(venue, "address", "longitude"),
    )

    price = None
    if raw.get("is_free") is False:
        low = dig(raw, "ticket_availability", "minimum_ticket_price")
        high = dig(raw, "ticket_availability", "maximum_ticket_price")
        price = price_range(
            dig(low, "major_value"),
            dig(high, "major_value"),
            dig(low, "currency") or dig(high, "currency"),
        )

    image_urls = unique_urls(dig(raw, "logo", "url"), dig(raw, "logo", "original", "url"))

    organizer_name = clean_text(dig(raw, "organizer", "name"))
    organizer_avatar = dig(raw, "organizer", "logo", "url")
    organizer = None
    if organizer_name or organizer_avatar:
        organizer = Organizer(name=organizer_name, avatar_url=organizer_avatar)

    url = raw.get("url")
    category = clean_text(dig(raw, "category", "name")) or clean_text(dig(raw, "subcategory", "name")) or "Event"
    tags = [t for t in (clean_text(dig(raw, "subcategory", "name")), clean_text(dig(raw, "format", "name"))) if t]

    return Event(
        external_id=str(external_id),
        source=ProviderId.EVENTBRITE,
        title=title,
        start=start,
        end=end,
        description=clean_text(dig(raw, "description", "text")) or clean_text(raw.get("summary")) or "",
        category=category,
        venue_name=clean_text(venue.get("name")),
        address=address or None,
        coordinates=coordinates,
        price=price,
        image_url=image_urls[0] if image_urls else "",
        images=image_urls,
        ticket_links=[TicketLink(source="Eventbrite", url=url)] if url else [],
        organizer=organizer,
        url=url,
        tags=tags,
    )


class EventbriteAdapter(BaseProviderAdapter):
    """Eventbrite ``/events/search/``."""

    provider_id = ProviderId.EVENTBRITE.value
    base_url = "https://www.eventbriteapi.com/v3"
    search_path = "/events/search/"
    volatile = False
    max_page_size = 50

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._credential}"}

    def build_params(self, query: EventQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query.keyword,
            "expand": "venue,organizer,ticket_availability,category,subcategory",
            "page_size": self.max_page_size,
            "page": 1,
            "sort_by": "date",
        }
        if query.coordinates is not None:
            params["location.latitude"] = query.lat
            params["location.longitude"] = query.lng
            params["location.within"] = f"{max(1, round(query.radius_miles))}mi"
        elif query.place:
            params["location.address"] = query.place
            params["location.within"] = f"{max(1, round(query.radius_miles))}mi"
        if query.start_date:
            params["start_date.range_start"] = query.start_datetime().strftime("%Y-%m-%dT%H:%M:%S")
        if query.end_date:
            params["start_date.range_end"] = query.end_datetime().strftime("%Y-%m-%dT%H:%M:%S")
        return params

    def extract_records(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict) or "events" not in payload:
            raise MalformedResponseError(self.provider_id, "Response has no 'events' list")
        return self._require_list(payload["events"], "events")

    def map_event(self, raw: dict[str, Any]) -> Event | None:
        return map_eventbrite_event(raw)
