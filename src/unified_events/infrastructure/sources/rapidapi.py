"""
RapidAPI "Real-Time Events Search" adapter.

Authentication: ``X-RapidAPI-Key`` / ``X-RapidAPI-Host`` headers.
Listings are volatile (short cache TTL). The upstream has no coordinate
search, so location goes into the free-text query and the assembler applies
the radius afterwards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from unified_events.domain.entities import (
    Coordinates,
    Event,
    EventQuery,
    Organizer,
    PriceRange,
    ProviderId,
    TicketLink,
)
from unified_events.shared.exceptions import MalformedResponseError, ProviderError

from .base import BaseProviderAdapter
from .parsing import (
    clean_text,
    parse_datetime,
    parse_float,
    parse_local_datetime,
    parse_price_text,
    price_range,
    unique_urls,
)

RAPIDAPI_HOST = "real-time-events-search.p.rapidapi.com"

_CONCERT_TAGS = {"concert", "music", "show", "live music"}
_CONCERT_VENUES = {"concert_hall", "live_music_venue", "music_venue"}
_CLUB_TAGS = {"clubbing", "dj", "nightlife", "club"}
_DAY_PARTY_TAGS = {"party", "social", "day party"}
_PARTY_TAGS = {"party", "celebration"}


def categorize_event(raw: dict[str, Any], start: datetime | None = None) -> str:
    """
    Infer a display category from tags, venue type, name and start hour.

    Club events must start between 18:00 and 06:00, day parties between
    12:00 and 18:00; otherwise they fall through to the next rule.
    """
    tags = {str(t).lower() for t in raw.get("tags") or []}
    venue = raw.get("venue") if isinstance(raw.get("venue"), dict) else {}
    subtype = str(venue.get("subtype") or "").lower()
    subtypes = {str(s).lower() for s in venue.get("subtypes") or []}
    name = str(raw.get("name") or "").lower()
    description = str(raw.get("description") or "").lower()
    hour = start.hour if start is not None else None

    if tags & _CONCERT_TAGS or subtype in _CONCERT_VENUES or subtypes & {"concert_hall", "live_music_venue"}:
        return "Concerts"

    is_club = (
        subtype == "night_club"
        or "night_club" in subtypes
        or tags & _CLUB_TAGS
        or "club" in name
        or "club" in description
    )
    if is_club and hour is not None and (hour >= 18 or hour <= 6):
        return "Club Events"

    is_day_party = tags & _DAY_PARTY_TAGS or "day party" in name or "day party" in description
    if is_day_party and hour is not None and 12 <= hour <= 18:
        return "Day Parties"

    if tags & _PARTY_TAGS or "party" in name or "party" in description:
        return "Parties"

    return "General Events"


def extract_price(raw: dict[str, Any]) -> PriceRange | None:
    """Structured price first, then ``min_price``/``max_price``, then the text."""
    price = raw.get("price") if isinstance(raw.get("price"), dict) else {}
    if raw.get("is_free") is True or price.get("is_free") is True:
        return None

    structured = price_range(price.get("min"), price.get("max"), price.get("currency"))
    if structured is not None:
        return structured
    direct = price_range(raw.get("min_price"), raw.get("max_price"), raw.get("currency"))
    if direct is not None:
        return direct

    parsed, _found = parse_price_text(f"{raw.get('name') or ''} {raw.get('description') or ''}")
    return parsed


def map_rapidapi_event(raw: dict[str, Any]) -> Event | None:
    """Map one ``data[]`` record."""
    title = clean_text(raw.get("name"))
    external_id = raw.get("event_id")
    start = parse_local_datetime(raw.get("start_time")) or parse_datetime(raw.get("start_time_utc"))
    if not title or not external_id or start is None:
        return None
    end = parse_local_datetime(raw.get("end_time")) or parse_datetime(raw.get("end_time_utc"))
    # Day-precision listings carry a midnight placeholder time.
    time_known = (parse_float(raw.get("start_time_precision_sec")) or 0.0) < 86400

    venue = raw.get("venue") if isinstance(raw.get("venue"), dict) else {}
    links = [
        TicketLink(source=str(link.get("source") or "Tickets"), url=link["link"])
        for link in raw.get("ticket_links") or []
        if isinstance(link, dict) and link.get("link")
    ]
    publisher = clean_text(raw.get("publisher"))
    tags = [str(t) for t in raw.get("tags") or [] if t]

    return Event(
        external_id=str(external_id),
        source=ProviderId.RAPIDAPI,
        title=title,
        start=start,
        end=end,
        start_time_known=time_known,
        description=clean_text(raw.get("description")) or "",
        category=categorize_event(raw, start),
        venue_name=clean_text(venue.get("name")),
        address=clean_text(venue.get("full_address")),
        coordinates=Coordinates.parse(venue.get("latitude"), venue.get("longitude")),
        price=extract_price(raw),
        image_url=clean_text(raw.get("thumbnail")) or "",
        images=unique_urls(raw.get("thumbnail")),
        ticket_links=links,
        organizer=Organizer(name=publisher) if publisher else None,
        url=raw.get("link"),
        tags=tags,
    )


class RapidAPIAdapter(BaseProviderAdapter):
    """RapidAPI ``/search-events``."""

    provider_id = ProviderId.RAPIDAPI.value
    base_url = f"https://{RAPIDAPI_HOST}"
    search_path = "/search-events"
    volatile = True

    def auth_headers(self) -> dict[str, str]:
        return {"X-RapidAPI-Key": self._credential or "", "X-RapidAPI-Host": RAPIDAPI_HOST}

    def build_params(self, query: EventQuery) -> dict[str, Any]:
        text = query.keyword or "events"
        if query.place:
            text = f"{text} in {query.place}"
        return {
            "query": text,
            "date": "any",
            "is_virtual": "false",
            "start": 0,
        }

    def extract_records(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.provider_id, "Response body is not an object")
        status = payload.get("status")
        if status is not None and status != "OK":
            error = payload.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            raise ProviderError(self.provider_id, f"Upstream status {status}: {message or 'no details'}")
        return self._require_list(payload.get("data"), "data")

    def map_event(self, raw: dict[str, Any]) -> Event | None:
        return map_rapidapi_event(raw)
