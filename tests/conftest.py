"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from unified_events.domain.entities import Coordinates, Event, Organizer, PriceRange, TicketLink

# ============================================================
# Clock Fixtures
# ============================================================


class FakeClock:
    """Manually advanced clock; also usable as an ``asyncio.sleep`` stand-in."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================
# Event Factories
# ============================================================


def make_event(**overrides: Any) -> Event:
    """Minimal valid event; override any field."""
    fields: dict[str, Any] = {
        "external_id": "evt-1",
        "source": "ticketmaster",
        "title": "Jazz Night",
        "start": datetime(2025, 6, 14, 20, 0),
        "venue_name": "Blue Note",
        "coordinates": Coordinates(40.7308, -74.0007),
    }
    fields.update(overrides)
    return Event(**fields)


def make_rich_event(**overrides: Any) -> Event:
    """Event with every quality signal populated."""
    fields: dict[str, Any] = {
        "description": "An evening of live jazz. " * 20,
        "address": "131 W 3rd St, New York, NY",
        "image_url": "https://img.example.com/a.jpg",
        "images": ["https://img.example.com/a.jpg", "https://img.example.com/b.jpg"],
        "ticket_links": [TicketLink("Ticketmaster", "https://tm.example.com/e/1")],
        "price": PriceRange(25.0, 60.0),
        "organizer": Organizer("Blue Note Presents", "https://img.example.com/org.png"),
    }
    fields.update(overrides)
    return make_event(**fields)


@pytest.fixture
def event_factory():
    return make_event
