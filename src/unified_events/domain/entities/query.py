"""
EventQuery - one logical search across all providers.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from unified_events.shared.exceptions import InvalidParameterError, InvalidQueryError

from .event import Coordinates

DEFAULT_RADIUS_KM = 40.0
MAX_LIMIT = 200


class SortOrder(Enum):
    """Result ordering applied by the assembler."""

    DATE_ASC = "date"
    DATE_DESC = "date_desc"
    QUALITY = "quality"
    DISTANCE = "distance"


@dataclass(frozen=True)
class EventQuery:
    """
    Canonical search parameters.

    Either ``lat``/``lng`` or ``place`` locates the search; both may be absent
    for a keyword-only search. ``offset``/``limit`` paginate the merged result
    and never affect cache keys.
    """

    keyword: str | None = None
    lat: float | None = None
    lng: float | None = None
    place: str | None = None
    radius_km: float = DEFAULT_RADIUS_KM
    categories: tuple[str, ...] = field(default_factory=tuple)
    start_date: date | None = None
    end_date: date | None = None
    offset: int = 0
    limit: int = 50
    sort: SortOrder = SortOrder.DATE_ASC
    bypass_cache: bool = False

    def __post_init__(self) -> None:
        if (self.lat is None) != (self.lng is None):
            raise InvalidQueryError("lat and lng must be given together")
        if self.lat is not None:
            # Raises InvalidParameterError when out of range.
            Coordinates(self.lat, self.lng)
        if self.radius_km <= 0:
            raise InvalidParameterError("radius_km", self.radius_km, "a positive distance")
        if self.offset < 0:
            raise InvalidParameterError("offset", self.offset, "offset >= 0")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise InvalidParameterError("limit", self.limit, f"1 <= limit <= {MAX_LIMIT}")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise InvalidQueryError("end_date is before start_date")
        if isinstance(self.categories, list):
            object.__setattr__(self, "categories", tuple(self.categories))
        if isinstance(self.sort, str):
            object.__setattr__(self, "sort", SortOrder(self.sort))

    @property
    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(self.lat, self.lng)

    @property
    def radius_miles(self) -> float:
        return self.radius_km / 1.609344

    def with_coordinates(self, coords: Coordinates) -> EventQuery:
        return replace(self, lat=coords.lat, lng=coords.lng)

    def start_datetime(self) -> datetime | None:
        return datetime.combine(self.start_date, datetime.min.time()) if self.start_date else None

    def end_datetime(self) -> datetime | None:
        return datetime.combine(self.end_date, datetime.max.time()) if self.end_date else None

    # ------------------------------------------------------------------
    # Cache keys
    # ------------------------------------------------------------------

    def normalized(self) -> dict[str, Any]:
        """Search-defining parameters only, in canonical form."""
        return {
            "keyword": " ".join(self.keyword.lower().split()) if self.keyword else None,
            "lat": round(self.lat, 4) if self.lat is not None else None,
            "lng": round(self.lng, 4) if self.lng is not None else None,
            "place": self.place.strip().lower() if self.place else None,
            "radius_km": round(self.radius_km, 2),
            "categories": sorted({c.strip().lower() for c in self.categories if c.strip()}),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    def cache_key(self, scope: str) -> str:
        """SHA-256 of ``scope`` plus the normalized query."""
        payload = json.dumps({"scope": scope, **self.normalized()}, sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.normalized(),
            "offset": self.offset,
            "limit": self.limit,
            "sort": self.sort.value,
            "bypass_cache": self.bypass_cache,
        }
