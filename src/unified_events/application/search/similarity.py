"""
Event Similarity - weighted field comparison for duplicate detection.

Five sub-scores, each in [0, 1]:

    title     0.40  normalized edit-distance similarity
    venue     0.25  normalized edit-distance similarity
    date      0.15  step function on whole-day difference
    time      0.10  step function on time-of-day difference (minutes)
    location  0.10  step function on haversine distance (km)

A field missing on both sides scores 1.0; missing on one side scores 0.0.
Every function here is symmetric in its two arguments.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime

from unified_events.domain.entities import Coordinates, Event

EARTH_RADIUS_KM = 6371.0

# Spelling variants seen across providers, mapped to one canonical token.
TOKEN_VARIANTS: dict[str, str] = {
    "nite": "night",
    "tonite": "tonight",
    "thru": "through",
    "centre": "center",
    "theatre": "theater",
    "ampitheatre": "amphitheater",
    "amphitheatre": "amphitheater",
    "fest": "festival",
    "feat": "featuring",
    "ft": "featuring",
}

LEADING_ARTICLES = frozenset({"the", "a", "an"})

_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_WS_RE = re.compile(r"\s+")

# (upper bound, score) steps; the first bound the value fits under wins.
DATE_STEPS: tuple[tuple[int, float], ...] = ((0, 1.0), (1, 0.8), (2, 0.6), (7, 0.4))
TIME_STEPS: tuple[tuple[float, float], ...] = ((0, 1.0), (30, 0.8), (60, 0.6), (120, 0.4))
# Location bounds are exclusive.
LOCATION_STEPS: tuple[tuple[float, float], ...] = ((0.1, 1.0), (1.0, 0.8), (5.0, 0.6), (10.0, 0.4))


# =============================================================================
# Text
# =============================================================================


def normalize_text(text: str | None) -> str:
    """
    Lower-case, delete punctuation, collapse whitespace, canonicalize
    spelling variants and drop a leading article.

    >>> normalize_text("The  Blue-Note!")
    'bluenote'
    >>> normalize_text("Jazz Nite")
    'jazz night'
    """
    if not text:
        return ""
    text = _PUNCT_RE.sub("", text.lower())
    tokens = [TOKEN_VARIANTS.get(tok, tok) for tok in _WS_RE.split(text.strip()) if tok]
    if len(tokens) > 1 and tokens[0] in LEADING_ARTICLES:
        tokens = tokens[1:]
    return " ".join(tokens)


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + (ca != cb),  # substitution
                )
            )
        previous = current
    return previous[-1]


def text_similarity(a: str | None, b: str | None) -> float:
    """``1 - distance / max(len)`` over normalized text."""
    na, nb = normalize_text(a), normalize_text(b)
    if not na and not nb:
        return 1.0
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    return 1.0 - levenshtein(na, nb) / max(len(na), len(nb))


# =============================================================================
# Date / time / location
# =============================================================================


def _step(value: float, steps: tuple[tuple[float, float], ...], *, inclusive: bool = True) -> float:
    for bound, score in steps:
        if value <= bound if inclusive else value < bound:
            return score
    return 0.0


def date_similarity(a: datetime | None, b: datetime | None) -> float:
    if a is None and b is None:
        return 1.0
    if a is None or b is None:
        return 0.0
    days = abs((a.date() - b.date()).days)
    return _step(days, DATE_STEPS)


def time_similarity(
    a: datetime | None,
    b: datetime | None,
    *,
    a_known: bool = True,
    b_known: bool = True,
) -> float:
    """Compare time-of-day only. Unknown times count as missing."""
    ta = a if a is not None and a_known else None
    tb = b if b is not None and b_known else None
    if ta is None and tb is None:
        return 1.0
    if ta is None or tb is None:
        return 0.0
    minutes_a = ta.hour * 60 + ta.minute
    minutes_b = tb.hour * 60 + tb.minute
    return _step(abs(minutes_a - minutes_b), TIME_STEPS)


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in kilometres."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def location_similarity(a: Coordinates | None, b: Coordinates | None) -> float:
    if a is None and b is None:
        return 1.0
    if a is None or b is None:
        return 0.0
    return _step(haversine_km(a, b), LOCATION_STEPS, inclusive=False)


# =============================================================================
# Weighted comparison
# =============================================================================


@dataclass(frozen=True)
class SimilarityWeights:
    """Field weights. Must sum to 1."""

    title: float = 0.40
    venue: float = 0.25
    date: float = 0.15
    time: float = 0.10
    location: float = 0.10

    def __post_init__(self) -> None:
        total = self.title + self.venue + self.date + self.time + self.location
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            msg = f"Similarity weights must sum to 1.0, got {total}"
            raise ValueError(msg)


DEFAULT_WEIGHTS = SimilarityWeights()


@dataclass(frozen=True)
class SimilarityScore:
    """Sub-scores and weighted total for one pair. Never stored."""

    title: float
    venue: float
    date: float
    time: float
    location: float
    overall: float


def compare(a: Event, b: Event, weights: SimilarityWeights = DEFAULT_WEIGHTS) -> SimilarityScore:
    """Score how likely ``a`` and ``b`` describe the same real-world event."""
    title = text_similarity(a.title, b.title)
    venue = text_similarity(a.venue_name, b.venue_name)
    date = date_similarity(a.start, b.start)
    time = time_similarity(a.start, b.start, a_known=a.start_time_known, b_known=b.start_time_known)
    location = location_similarity(a.coordinates, b.coordinates)
    overall = (
        title * weights.title
        + venue * weights.venue
        + date * weights.date
        + time * weights.time
        + location * weights.location
    )
    return SimilarityScore(
        title=title,
        venue=venue,
        date=date,
        time=time,
        location=location,
        overall=round(overall, 10),
    )
