"""
Field parsers shared by the provider mapping functions.

All helpers are lenient: bad input yields None rather than an exception.
"""

from __future__ import annotations

import html
import re
from datetime import date, datetime, time, timezone
from typing import Any

from unified_events.domain.entities import PriceRange

# Fill-ins providers use instead of leaving a field empty.
PLACEHOLDER_VALUES = frozenset(
    {
        "",
        "tba",
        "tbd",
        "venue tba",
        "address tba",
        "location tba",
        "price tba",
        "event organizer",
        "untitled event",
        "no description available.",
        "no description available",
    }
)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_PRICE_RE = re.compile(r"\$\s?(\d+(?:,\d{3})*(?:\.\d{1,2})?)")
_FREE_WORDS = ("free", "no charge", "complimentary")


def clean_text(value: Any) -> str | None:
    """Strip HTML, unescape entities, collapse whitespace; placeholders become None."""
    if value is None:
        return None
    text = _WS_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", str(value)))).strip()
    if text.lower() in PLACEHOLDER_VALUES:
        return None
    return text


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists; None as soon as a step is missing."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def parse_datetime(value: Any) -> datetime | None:
    """
    ISO 8601 (with or without ``Z``), or unix seconds / milliseconds.

    Timezone-aware values are converted to naive UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
        seconds = float(value)
        if seconds > 1e11:
            seconds /= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = _to_naive_utc(parsed)
    return parsed


def _to_naive_utc(value: datetime) -> datetime:
    offset = value.utcoffset()
    naive = value.replace(tzinfo=None)
    return naive - offset if offset else naive


def parse_local_datetime(value: Any) -> datetime | None:
    """Local wall-clock timestamp; any offset is dropped, not applied."""
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1]
        try:
            return datetime.fromisoformat(text).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def combine_date_time(local_date: Any, local_time: Any) -> tuple[datetime, bool] | None:
    """
    Join a ``YYYY-MM-DD`` date with an optional ``HH:MM[:SS]`` time.

    Returns ``(start, time_known)`` or None when the date is unusable.
    """
    if not isinstance(local_date, str):
        return None
    try:
        day = date.fromisoformat(local_date.strip())
    except ValueError:
        return None
    if isinstance(local_time, str) and local_time.strip():
        try:
            return datetime.combine(day, time.fromisoformat(local_time.strip())), True
        except ValueError:
            pass
    return datetime.combine(day, time()), False


def parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if number == number else None


def price_range(min_value: Any, max_value: Any = None, currency: Any = None) -> PriceRange | None:
    """PriceRange from numeric-ish bounds, or None when no bound parses."""
    low, high = parse_float(min_value), parse_float(max_value)
    if low is None and high is None:
        return None
    if low is None:
        low = high
    if high is not None and high < low:
        low, high = high, low
    price = PriceRange(min=low, max=high, currency=str(currency or "USD").upper())
    return None if price.is_free else price


def parse_price_text(text: str | None) -> tuple[PriceRange | None, bool]:
    """
    Read a price out of free text.

    Returns ``(price, found)``. ``found`` is True when the text states a
    price or says the event is free; ``price`` is None for free events.
    """
    if not text:
        return None, False
    lowered = text.lower()
    if any(word in lowered for word in _FREE_WORDS):
        return None, True
    amounts = [float(m.replace(",", "")) for m in _PRICE_RE.findall(lowered)]
    if amounts:
        return price_range(min(amounts), max(amounts)), True
    return None, False


def unique_urls(*urls: Any) -> list[str]:
    seen: list[str] = []
    for url in urls:
        if isinstance(url, str) and url.strip() and url.strip() not in seen:
            seen.append(url.strip())
    return seen
