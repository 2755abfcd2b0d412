"""Tests for provider mapping functions and adapters."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from unified_events.domain.entities import Coordinates, EventQuery, Organizer, PriceRange, TicketLink
from unified_events.infrastructure.sources import (
    EventbriteAdapter,
    PredictHQAdapter,
    RapidAPIAdapter,
    TicketmasterAdapter,
    categorize_event,
    create_adapters,
    extract_price,
    map_eventbrite_event,
    map_predicthq_event,
    map_rapidapi_event,
    map_ticketmaster_event,
)
from unified_events.infrastructure.sources.parsing import (
    clean_text,
    combine_date_time,
    dig,
    parse_datetime,
    parse_price_text,
)
from unified_events.shared.config import Settings
from unified_events.shared.exceptions import (
    MalformedResponseError,
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
)

# ============================================================================
# Fixtures: upstream payloads
# ============================================================================


@pytest.fixture
def ticketmaster_record():
    return {
        "id": "G5vYZ9",
        "name": "Jazz Night",
        "url": "https://www.ticketmaster.com/event/G5vYZ9",
        "info": "Doors at 7pm",
        "dates": {"start": {"localDate": "2025-06-14", "localTime": "20:00:00"}},
        "_embedded": {
            "venues": [
                {
                    "name": "Blue Note",
                    "address": {"line1": "131 W 3rd St"},
                    "city": {"name": "New York"},
                    "state": {"stateCode": "NY"},
                    "location": {"latitude": "40.7308", "longitude": "-74.0007"},
                }
            ],
            "attractions": [{"name": "Robert Glasper", "images": [{"url": "https://img.example.com/rg.jpg"}]}],
        },
        "priceRanges": [{"min": 35.0, "max": 75.0, "currency": "USD"}],
        "classifications": [
            {"segment": {"name": "Music"}, "genre": {"name": "Jazz"}, "subGenre": {"name": "Undefined"}}
        ],
        "images": [
            {"url": "https://img.example.com/small.jpg", "ratio": "4_3", "width": 305},
            {"url": "https://img.example.com/big.jpg", "ratio": "16_9", "width": 1024},
        ],
        "sales": {"presales": [{"name": "Fan Club", "url": "https://www.ticketmaster.com/presale"}]},
    }


@pytest.fixture
def eventbrite_record():
    return {
        "id": "123",
        "name": {"text": "Jazz Nite"},
        "description": {"text": "<p>Live jazz &amp; cocktails</p>"},
        "start": {"local": "2025-06-14T20:05:00", "utc": "2025-06-15T00:05:00Z"},
        "end": {"local": "2025-06-14T23:00:00"},
        "url": "https://www.eventbrite.com/e/123",
        "is_free": False,
        "ticket_availability": {
            "minimum_ticket_price": {"major_value": "25.00", "currency": "USD"},
            "maximum_ticket_price": {"major_value": "40.00", "currency": "USD"},
        },
        "venue": {
            "name": "The Blue Note",
            "latitude": "40.731",
            "longitude": "-74.001",
            "address": {"address_1": "131 W 3rd St", "city": "New York", "region": "NY"},
        },
        "logo": {"url": "https://img.example.com/eb.jpg"},
        "organizer": {"name": "Blue Note Presents", "logo": {"url": "https://img.example.com/org.png"}},
        "category": {"name": "Music"},
        "subcategory": {"name": "Jazz"},
    }


@pytest.fixture
def rapidapi_record():
    return {
        "event_id": "r1",
        "name": "Rooftop Day Party",
        "description": "Tickets $15 at the door",
        "start_time": "2025-06-14 14:00:00",
        "start_time_precision_sec": 1,
        "venue": {
            "name": "Skyline",
            "full_address": "1 Main St, Austin, TX",
            "latitude": 30.26,
            "longitude": -97.74,
            "subtype": "bar",
        },
        "tags": ["party"],
        "ticket_links": [{"source": "Eventbrite", "link": "https://www.eventbrite.com/e/r1"}],
        "publisher": "Do512",
        "thumbnail": "https://img.example.com/r1.jpg",
        "link": "https://do512.com/events/r1",
    }


@pytest.fixture
def predicthq_record():
    return {
        "id": "p1",
        "title": "Jazz Night",
        "start": "2025-06-15T00:00:00Z",
        "start_local": "2025-06-14T20:00:00",
        "duration": 10800,
        "category": "concerts",
        "labels": ["music", "jazz"],
        "location": [-74.0007, 40.7308],
        "entities": [
            {"type": "organization", "name": "Someone"},
            {"type": "venue", "name": "Blue Note", "formatted_address": "131 W 3rd St, New York"},
        ],
        "brand": "Blue Note",
    }


QUERY = EventQuery(keyword="jazz", lat=40.7308, lng=-74.0007, radius_km=16.09344)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ============================================================================
# Parsing helpers
# ============================================================================


class TestParsing:
    def test_clean_text(self):
        assert clean_text("<b>Live</b>  &amp; loud ") == "Live & loud"
        assert clean_text("Venue TBA") is None
        assert clean_text(None) is None

    def test_dig(self):
        data = {"a": [{"b": 1}]}
        assert dig(data, "a", 0, "b") == 1
        assert dig(data, "a", 5, "b") is None
        assert dig(data, "x", "y") is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2025-06-15T00:05:00Z", datetime(2025, 6, 15, 0, 5)),
            ("2025-06-14T20:05:00-04:00", datetime(2025, 6, 15, 0, 5)),
            (1749945900, datetime(2025, 6, 15, 0, 5)),
            (1749945900000, datetime(2025, 6, 15, 0, 5)),
            ("not a date", None),
            (None, None),
        ],
    )
    def test_parse_datetime(self, value, expected):
        assert parse_datetime(value) == expected

    def test_combine_date_time(self):
        assert combine_date_time("2025-06-14", "20:00:00") == (datetime(2025, 6, 14, 20, 0), True)
        assert combine_date_time("2025-06-14", None) == (datetime(2025, 6, 14), False)
        assert combine_date_time("June 14", "20:00") is None

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Free entry, all ages", (None, True)),
            ("Tickets $20 - $45", (PriceRange(20.0, 45.0), True)),
            ("$1,200 VIP", (PriceRange(1200.0, 1200.0), True)),
            ("Bring a friend", (None, False)),
            (None, (None, False)),
        ],
    )
    def test_parse_price_text(self, text, expected):
        assert parse_price_text(text) == expected


# ============================================================================
# Mapping functions
# ============================================================================


class TestTicketmasterMapping:
    def test_full_record(self, ticketmaster_record):
        event = map_ticketmaster_event(ticketmaster_record)
        assert event.id == "ticketmaster:G5vYZ9"
        assert event.start == datetime(2025, 6, 14, 20, 0)
        assert event.start_time_known
        assert event.venue_name == "Blue Note"
        assert event.address == "131 W 3rd St, New York, NY"
        assert event.coordinates == Coordinates(40.7308, -74.0007)
        assert event.price == PriceRange(35.0, 75.0, "USD")
        assert event.category == "Music"
        assert event.tags == ["Jazz"]
        assert event.image_url == "https://img.example.com/big.jpg"
        assert event.images == ["https://img.example.com/big.jpg", "https://img.example.com/small.jpg"]
        assert event.ticket_links == [
            TicketLink("Ticketmaster", "https://www.ticketmaster.com/event/G5vYZ9"),
            TicketLink("Fan Club", "https://www.ticketmaster.com/presale"),
        ]
        assert event.organizer == Organizer("Robert Glasper", "https://img.example.com/rg.jpg")
        assert event.description == "Doors at 7pm"

    def test_time_tba(self, ticketmaster_record):
        ticketmaster_record["dates"]["start"] = {"localDate": "2025-06-14", "localTime": "19:30:00", "timeTBA": True}
        event = map_ticketmaster_event(ticketmaster_record)
        assert not event.start_time_known

    def test_missing_date_dropped(self, ticketmaster_record):
        del ticketmaster_record["dates"]
        assert map_ticketmaster_event(ticketmaster_record) is None

    def test_undefined_segment(self, ticketmaster_record):
        ticketmaster_record["classifications"] = [{"segment": {"name": "Undefined"}}]
        assert map_ticketmaster_event(ticketmaster_record).category == "Event"


class TestEventbriteMapping:
    def test_full_record(self, eventbrite_record):
        event = map_eventbrite_event(eventbrite_record)
        assert event.id == "eventbrite:123"
        assert event.title == "Jazz Nite"
        assert event.start == datetime(2025, 6, 14, 20, 5)
        assert event.end == datetime(2025, 6, 14, 23, 0)
        assert event.description == "Live jazz & cocktails"
        assert event.address == "131 W 3rd St, New York, NY"
        assert event.coordinates == Coordinates(40.731, -74.001)
        assert event.price == PriceRange(25.0, 40.0, "USD")
        assert event.organizer.name == "Blue Note Presents"
        assert event.ticket_links == [TicketLink("Eventbrite", "https://www.eventbrite.com/e/123")]
        assert event.category == "Music"
        assert event.tags == ["Jazz"]

    def test_free_event_has_no_price(self, eventbrite_record):
        eventbrite_record["is_free"] = True
        assert map_eventbrite_event(eventbrite_record).price is None

    def test_utc_fallback(self, eventbrite_record):
        eventbrite_record["start"] = {"utc": "2025-06-15T00:05:00Z"}
        assert map_eventbrite_event(eventbrite_record).start == datetime(2025, 6, 15, 0, 5)

    def test_placeholder_title_dropped(self, eventbrite_record):
        eventbrite_record["name"] = {"text": "Untitled Event"}
        assert map_eventbrite_event(eventbrite_record) is None


class TestRapidAPIMapping:
    def test_full_record(self, rapidapi_record):
        event = map_rapidapi_event(rapidapi_record)
        assert event.id == "rapidapi:r1"
        assert event.start == datetime(2025, 6, 14, 14, 0)
        assert event.start_time_known
        assert event.category == "Day Parties"
        assert event.price == PriceRange(15.0, 15.0)
        assert event.coordinates == Coordinates(30.26, -97.74)
        assert event.organizer == Organizer("Do512")
        assert event.ticket_links == [TicketLink("Eventbrite", "https://www.eventbrite.com/e/r1")]
        assert event.image_url == "https://img.example.com/r1.jpg"

    def test_day_precision_means_unknown_time(self, rapidapi_record):
        rapidapi_record["start_time_precision_sec"] = 86400
        assert not map_rapidapi_event(rapidapi_record).start_time_known

    @pytest.mark.parametrize(
        ("raw", "hour", "expected"),
        [
            ({"tags": ["music"]}, 20, "Concerts"),
            ({"venue": {"subtype": "live_music_venue"}}, 20, "Concerts"),
            ({"name": "Club Night"}, 23, "Club Events"),
            ({"name": "Club Night"}, 15, "General Events"),
            ({"tags": ["party"]}, 14, "Day Parties"),
            ({"name": "Graduation Party"}, 20, "Parties"),
            ({}, 20, "General Events"),
        ],
    )
    def test_categorize(self, raw, hour, expected):
        assert categorize_event(raw, datetime(2025, 6, 14, hour, 0)) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ({"is_free": True, "description": "$50"}, None),
            ({"price": {"min": 10, "max": 20}}, PriceRange(10.0, 20.0)),
            ({"min_price": "5"}, PriceRange(5.0, None)),
            ({"description": "Free entry"}, None),
            ({"name": "Gala", "description": "$20 - $45"}, PriceRange(20.0, 45.0)),
        ],
    )
    def test_extract_price(self, raw, expected):
        assert extract_price(raw) == expected


class TestPredictHQMapping:
    def test_full_record(self, predicthq_record):
        event = map_predicthq_event(predicthq_record)
        assert event.id == "predicthq:p1"
        assert event.start == datetime(2025, 6, 14, 20, 0)
        assert event.start_time_known
        assert event.coordinates == Coordinates(40.7308, -74.0007)
        assert event.venue_name == "Blue Note"
        assert event.address == "131 W 3rd St, New York"
        assert event.category == "Concerts"
        assert event.tags == ["music", "jazz"]
        assert event.organizer == Organizer("Blue Note")
        assert event.price is None

    def test_all_day(self, predicthq_record):
        predicthq_record["start_local"] = "2025-07-04T00:00:00"
        predicthq_record["duration"] = 86399
        predicthq_record["category"] = "public-holidays"
        event = map_predicthq_event(predicthq_record)
        assert not event.start_time_known
        assert event.category == "Public Holidays"


# ============================================================================
# Adapters
# ============================================================================


class TestTicketmasterAdapter:
    async def test_search_maps_and_drops(self, ticketmaster_record):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"_embedded": {"events": [ticketmaster_record, {"name": "No date"}]}})

        adapter = TicketmasterAdapter("tm-key", client=mock_client(handler))
        response = await adapter.search(QUERY)

        assert response.ok
        assert [e.id for e in response.events] == ["ticketmaster:G5vYZ9"]
        assert response.dropped == 1

        params = seen[0].url.params
        assert seen[0].url.path == "/discovery/v2/events.json"
        assert params["apikey"] == "tm-key"
        assert params["keyword"] == "jazz"
        assert params["latlong"] == "40.7308,-74.0007"
        assert params["radius"] == "10"
        assert params["unit"] == "miles"

    async def test_no_embedded_means_no_results(self):
        adapter = TicketmasterAdapter("tm-key", client=mock_client(lambda r: httpx.Response(200, json={"page": {}})))
        response = await adapter.search(QUERY)
        assert response.ok
        assert response.events == []

    async def test_place_search_uses_city(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        adapter = TicketmasterAdapter("tm-key", client=mock_client(handler))
        await adapter.search(EventQuery(place="Austin"))
        assert seen[0].url.params["city"] == "Austin"
        assert "latlong" not in seen[0].url.params

    @pytest.mark.parametrize("offset,limit", [(0, 5), (40, 20), (0, 200)])
    async def test_page_size_ignores_query_pagination(self, offset, limit):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        adapter = TicketmasterAdapter("tm-key", client=mock_client(handler))
        await adapter.search(EventQuery(keyword="jazz", offset=offset, limit=limit))
        assert seen[0].url.params["size"] == "200"
        assert seen[0].url.params["page"] == "0"

    async def test_upstream_failure_is_returned(self):
        adapter = TicketmasterAdapter("tm-key", client=mock_client(lambda r: httpx.Response(503)))
        response = await adapter.search(QUERY)
        assert response.events == []
        assert isinstance(response.error, ProviderUnavailableError)
        assert response.error.provider_id == "ticketmaster"

    async def test_unconfigured_makes_no_request(self):
        handler = AsyncMock()
        adapter = TicketmasterAdapter(None, client=mock_client(handler))
        response = await adapter.search(QUERY)
        assert not adapter.configured
        assert isinstance(response.error, ProviderAuthError)
        handler.assert_not_called()


class TestEventbriteAdapter:
    async def test_bearer_auth_and_location(self, eventbrite_record):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"events": [eventbrite_record]})

        adapter = EventbriteAdapter("eb-token", client=mock_client(handler))
        response = await adapter.search(QUERY)
        assert len(response.events) == 1
        assert seen[0].headers["Authorization"] == "Bearer eb-token"
        assert seen[0].url.params["location.within"] == "10mi"
        assert seen[0].url.params["q"] == "jazz"

    async def test_missing_events_key_is_malformed(self):
        adapter = EventbriteAdapter("eb-token", client=mock_client(lambda r: httpx.Response(200, json={"x": 1})))
        response = await adapter.search(QUERY)
        assert isinstance(response.error, MalformedResponseError)


class TestRapidAPIAdapter:
    async def test_headers_and_text_query(self, rapidapi_record):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "OK", "data": [rapidapi_record]})

        adapter = RapidAPIAdapter("rapid-key", client=mock_client(handler))
        response = await adapter.search(EventQuery(keyword="party", place="Austin, TX"))
        assert len(response.events) == 1
        assert adapter.volatile
        assert seen[0].headers["X-RapidAPI-Key"] == "rapid-key"
        assert seen[0].headers["X-RapidAPI-Host"] == "real-time-events-search.p.rapidapi.com"
        assert seen[0].url.params["query"] == "party in Austin, TX"

    async def test_error_status(self):
        body = {"status": "ERROR", "error": {"message": "quota"}}
        adapter = RapidAPIAdapter("rapid-key", client=mock_client(lambda r: httpx.Response(200, json=body)))
        response = await adapter.search(QUERY)
        assert isinstance(response.error, ProviderError)
        assert "quota" in str(response.error)


class TestPredictHQAdapter:
    async def test_within_param(self, predicthq_record):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": [predicthq_record]})

        adapter = PredictHQAdapter("phq", client=mock_client(handler))
        response = await adapter.search(QUERY)
        assert len(response.events) == 1
        assert seen[0].url.params["within"] == "10mi@40.7308,-74.0007"
        assert seen[0].headers["Authorization"] == "Bearer phq"


class TestGeocodeBackfill:
    async def test_missing_coordinates_filled(self, eventbrite_record):
        del eventbrite_record["venue"]["latitude"]
        del eventbrite_record["venue"]["longitude"]
        geocoder = AsyncMock()
        geocoder.resolve.return_value = Coordinates(40.73, -74.0)

        adapter = EventbriteAdapter(
            "eb-token",
            client=mock_client(lambda r: httpx.Response(200, json={"events": [eventbrite_record]})),
            geocoder=geocoder,
        )
        response = await adapter.search(QUERY)
        assert response.events[0].coordinates == Coordinates(40.73, -74.0)
        geocoder.resolve.assert_awaited_once_with("131 W 3rd St, New York, NY", venue_hint="The Blue Note")

    async def test_geocoder_failure_leaves_event(self, eventbrite_record):
        del eventbrite_record["venue"]["latitude"]
        del eventbrite_record["venue"]["longitude"]
        geocoder = AsyncMock()
        geocoder.resolve.side_effect = RuntimeError("geocoder down")

        adapter = EventbriteAdapter(
            "eb-token",
            client=mock_client(lambda r: httpx.Response(200, json={"events": [eventbrite_record]})),
            geocoder=geocoder,
        )
        response = await adapter.search(QUERY)
        assert response.ok
        assert response.events[0].coordinates is None


class TestCreateAdapters:
    def test_one_adapter_per_provider(self):
        adapters = create_adapters(Settings(ticketmaster_api_key="tm", breaker_failure_threshold=3))
        assert set(adapters) == {"ticketmaster", "eventbrite", "rapidapi", "predicthq"}
        assert adapters["ticketmaster"].configured
        assert not adapters["predicthq"].configured
        assert adapters["ticketmaster"].circuit_breaker is not adapters["eventbrite"].circuit_breaker
        assert adapters["ticketmaster"].circuit_breaker.failure_threshold == 3
