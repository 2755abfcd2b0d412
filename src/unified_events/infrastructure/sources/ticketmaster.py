"""
Ticketmaster Discovery API adapter.

API Documentation: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/

Authentication: ``apikey`` query parameter.
Listings are static (long cache TTL).
"""

from __future__ import annotations

import logging
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
from .parsing import clean_text, combine_date_time, dig, price_range, unique_urls

logger = logging.getLogger(__name__)

# Preferred image ratios, best first.
_RATIO_PREFERENCE = {"16_9": 3, "3_2": 2, "4_3": 1}


def _image_rank(image: dict[str, Any]) -> tuple[int, int]:
    return (_RATIO_PREFERENCE.get(image.get("ratio") or "", 0), int(image.get("width") or 0))


def _ticket_links(raw: dict[str, Any]) -> list[TicketLink]:
    links: list[TicketLink] = []
    if raw.get("url"):
        links.append(TicketLink(source="Ticketmaster", url=raw["url"]))
    for presale in dig(raw, "sales", "presales") or []:
        if isinstance(presale, dict) and presale.get("url"):
            links.append(TicketLink(source=presale.get("name") or "Presale", url=presale["url"]))
    return links


def _description(raw: dict[str, Any]) -> str:
    parts = [
        clean_text(raw.get("info")) or clean_text(raw.get("pleaseNote")),
        clean_text(dig(raw, "promoter", "description")),
    ]
    return " ".join(p for p in parts if p)


def map_ticketmaster_event(raw: dict[str, Any]) -> Event | None:
    """Map one ``_embedded.events[]`` record. None when title, id or date is unusable."""
    title = clean_text(raw.get("name"))
    external_id = raw.get("id")
    start = combine_date_time(dig(raw, "dates", "start", "localDate"), dig(raw, "dates", "start", "localTime"))
    if not title or not external_id or start is None:
        return None
    start_at, time_known = start
    if dig(raw, "dates", "start", "timeTBA") or dig(raw, "dates", "start", "noSpecificTime"):
        time_known = False
    end = combine_date_time(dig(raw, "dates", "end", "localDate"), dig(raw, "dates", "end", "localTime"))

    venue = dig(raw, "_embedded", "venues", 0) or {}
    address = ", ".join(
        part
        for part in (
            clean_text(dig(venue, "address", "line1")),
            clean_text(dig(venue, "city", "name")),
            clean_text(dig(venue, "state", "stateCode")),
        )
        if part
    )
    coordinates = Coordinates.parse(dig(venue, "location", "latitude"), dig(venue, "location", "longitude"))

    price = None
    ranges = raw.get("priceRanges") or []
    if ranges and isinstance(ranges[0], dict):
        first = ranges[0]
        price = price_range(first.get("min"), first.get("max"), first.get("currency"))

    classification = dig(raw, "classifications", 0) or {}
    category = (
        clean_text(dig(classification, "segment", "name"))
        or clean_text(dig(classification, "genre", "name"))
        or "Event"
    )
    if category.lower() == "undefined":
        category = "Event"
    tags = [
        name
        for name in (
            clean_text(dig(classification, "genre", "name")),
            clean_text(dig(classification, "subGenre", "name")),
        )
        if name and name.lower() != "undefined"
    ]

    images = sorted(
        (i for i in raw.get("images") or [] if isinstance(i, dict) and i.get("url")),
        key=_image_rank,
        reverse=True,
    )
    image_urls = unique_urls(*(i["url"] for i in images))

    attraction = dig(raw, "_embedded", "attractions", 0) or {}
    organizer_name = clean_text(attraction.get("name")) or clean_text(dig(raw, "promoter", "name"))
    organizer_avatar = dig(attraction, "images", 0, "url")
    organizer = None
    if organizer_name or organizer_avatar:
        organizer = Organizer(name=organizer_name, avatar_url=organizer_avatar)

    return Event(
        external_id=str(external_id),
        source=ProviderId.TICKETMASTER,
        title=title,
        start=start_at,
        start_time_known=time_known,
        end=end[0] if end else None,
        description=_description(raw),
        category=category,
        venue_name=clean_text(venue.get("name")),
        address=address or None,
        coordinates=coordinates,
        price=price,
        image_url=image_urls[0] if image_urls else "",
        images=image_urls,
        ticket_links=_ticket_links(raw),
        organizer=organizer,
        url=raw.get("url"),
        tags=tags,
    )


class TicketmasterAdapter(BaseProviderAdapter):
    """Ticketmaster Discovery v2 ``/events.json``."""

    provider_id = ProviderId.TICKETMASTER.value
    base_url = "https://app.ticketmaster.com/discovery/v2"
    search_path = "/events.json"
    volatile = False
    max_page_size = 200

    def build_params(self, query: EventQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "apikey": self._credential,
            "keyword": query.keyword,
            "size": self.max_page_size,
            "page": 0,
            "sort": "date,asc",
        }
        if query.coordinates is not None:
            params["latlong"] = f"{query.lat},{query.lng}"
            params["radius"] = max(1, round(query.radius_miles))
            params["unit"] = "miles"
        elif query.place:
            params["city"] = query.place
        if query.start_date:
            params["startDateTime"] = query.start_datetime().strftime("%Y-%m-%dT%H:%M:%SZ")
        if query.end_date:
            params["endDateTime"] = query.end_datetime().strftime("%Y-%m-%dT%H:%M:%SZ")
        if query.categories:
            params["classificationName"] = ",".join(query.categories)
        return params

    def extract_records(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.provider_id, "Response body is not an object")
        # No ``_embedded`` key means zero results.
        return self._require_list(dig(payload, "_embedded", "events"), "_embedded.events")

    def map_event(self, raw: dict[str, Any]) -> Event | None:
        return map_ticketmaster_event(raw)
