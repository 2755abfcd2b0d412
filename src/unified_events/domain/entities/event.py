"""
Event - Canonical Event Record for Multi-Provider Aggregation

Every provider adapter maps its upstream payload into this one shape, so the
deduplication and assembly stages never see provider-specific fields.

Architecture Decision:
    Plain dataclasses, like the rest of the domain layer. Value objects
    (Coordinates, PriceRange, TicketLink, Organizer) are frozen; Event itself
    is mutable only in ``quality_score``, which is computed during selection.
    ``source`` is write-once.

Example:
    >>> event = Event(
    ...     external_id="G5vYZ9",
    ...     source=ProviderId.TICKETMASTER,
    ...     title="Jazz Night",
    ...     start=datetime(2024, 5, 1, 20, 0),
    ... )
    >>> event.id
    'ticketmaster:G5vYZ9'
    >>> event.is_free
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from unified_events.shared.exceptions import InvalidParameterError

# Sentinel used when a provider supplies no image.
PLACEHOLDER_IMAGE = "/community-event.png"


class ProviderId(str, Enum):
    """Known upstream listing providers, in default priority order."""

    TICKETMASTER = "ticketmaster"
    EVENTBRITE = "eventbrite"
    RAPIDAPI = "rapidapi"
    PREDICTHQ = "predicthq"

    @classmethod
    def priority(cls, provider: str) -> int:
        """Lower is earlier. Unknown providers sort last."""
        order = [p.value for p in cls]
        value = provider.value if isinstance(provider, ProviderId) else provider
        return order.index(value) if value in order else len(order)


@dataclass(frozen=True)
class Coordinates:
    """WGS84 point. Validated on construction."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise InvalidParameterError("lat", self.lat, "latitude in [-90, 90]")
        if not -180.0 <= self.lng <= 180.0:
            raise InvalidParameterError("lng", self.lng, "longitude in [-180, 180]")

    @classmethod
    def parse(cls, lat: Any, lng: Any) -> Coordinates | None:
        """Lenient constructor for upstream data: returns None instead of raising."""
        try:
            lat_f, lng_f = float(lat), float(lng)
        except (TypeError, ValueError):
            return None
        if lat_f != lat_f or lng_f != lng_f:  # NaN
            return None
        try:
            return cls(lat_f, lng_f)
        except InvalidParameterError:
            return None

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class PriceRange:
    """Ticket price range. An Event with no PriceRange is free."""

    min: float
    max: float | None = None
    currency: str = "USD"

    @property
    def is_free(self) -> bool:
        return self.min <= 0 and (self.max is None or self.max <= 0)

    def format(self) -> str:
        if self.is_free:
            return "Free"
        symbol = "$" if self.currency == "USD" else f"{self.currency} "
        if self.max is not None and self.max != self.min:
            return f"{symbol}{self.min:g} - {symbol}{self.max:g}"
        return f"{symbol}{self.min:g}"

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "currency": self.currency}


@dataclass(frozen=True)
class TicketLink:
    """A purchase or info link."""

    source: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "url": self.url}


@dataclass(frozen=True)
class Organizer:
    """Event organizer or headline act."""

    name: str | None = None
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"name": self.name, "avatar_url": self.avatar_url}


@dataclass
class Event:
    """
    Canonical event record.

    ``start`` is mandatory: adapters drop upstream records without one.
    ``start_time_known`` is False for date-only listings; the time-of-day
    part of ``start`` is then meaningless.
    """

    external_id: str
    source: str
    title: str
    start: datetime
    description: str = ""
    category: str = "Event"
    end: datetime | None = None
    start_time_known: bool = True
    venue_name: str | None = None
    address: str | None = None
    coordinates: Coordinates | None = None
    price: PriceRange | None = None
    image_url: str = PLACEHOLDER_IMAGE
    images: list[str] = field(default_factory=list)
    ticket_links: list[TicketLink] = field(default_factory=list)
    organizer: Organizer | None = None
    url: str | None = None
    tags: list[str] = field(default_factory=list)
    quality_score: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime):
            raise InvalidParameterError("start", self.start, "a datetime")
        if not self.title or not self.title.strip():
            raise InvalidParameterError("title", self.title, "a non-empty title")
        if isinstance(self.source, ProviderId):
            object.__setattr__(self, "source", self.source.value)
        if not self.image_url:
            self.image_url = PLACEHOLDER_IMAGE

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "source" and "source" in self.__dict__:
            msg = "Event.source is immutable once set"
            raise AttributeError(msg)
        super().__setattr__(name, value)

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        """Provider-qualified identifier."""
        return f"{self.source}:{self.external_id}"

    @property
    def is_free(self) -> bool:
        return self.price is None or self.price.is_free

    @property
    def has_image(self) -> bool:
        return bool(self.image_url) and self.image_url != PLACEHOLDER_IMAGE

    @property
    def image_count(self) -> int:
        """Distinct real images, including ``image_url``."""
        urls = {u for u in self.images if u and u != PLACEHOLDER_IMAGE}
        if self.has_image:
            urls.add(self.image_url)
        return len(urls)

    # ------------------------------------------------------------------
    # Serialization (cache payloads)
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "source": self.source,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end else None,
            "start_time_known": self.start_time_known,
            "venue_name": self.venue_name,
            "address": self.address,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "price": self.price.to_dict() if self.price else None,
            "image_url": self.image_url,
            "images": list(self.images),
            "ticket_links": [link.to_dict() for link in self.ticket_links],
            "organizer": self.organizer.to_dict() if self.organizer else None,
            "url": self.url,
            "tags": list(self.tags),
            "quality_score": self.quality_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        coords = data.get("coordinates")
        price = data.get("price")
        organizer = data.get("organizer")
        return cls(
            external_id=data["external_id"],
            source=data["source"],
            title=data["title"],
            start=datetime.fromisoformat(data["start"]),
            description=data.get("description") or "",
            category=data.get("category") or "Event",
            end=datetime.fromisoformat(data["end"]) if data.get("end") else None,
            start_time_known=data.get("start_time_known", True),
            venue_name=data.get("venue_name"),
            address=data.get("address"),
            coordinates=Coordinates(coords["lat"], coords["lng"]) if coords else None,
            price=PriceRange(price["min"], price.get("max"), price.get("currency", "USD")) if price else None,
            image_url=data.get("image_url") or PLACEHOLDER_IMAGE,
            images=list(data.get("images") or []),
            ticket_links=[TicketLink(link["source"], link["url"]) for link in data.get("ticket_links") or []],
            organizer=Organizer(organizer.get("name"), organizer.get("avatar_url")) if organizer else None,
            url=data.get("url"),
            tags=list(data.get("tags") or []),
            quality_score=data.get("quality_score"),
        )
