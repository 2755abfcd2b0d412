"""Tests for field similarity scoring."""

from __future__ import annotations

from datetime import datetime

import pytest
from conftest import make_event

from unified_events.application.search.similarity import (
    SimilarityWeights,
    compare,
    date_similarity,
    haversine_km,
    levenshtein,
    location_similarity,
    normalize_text,
    text_similarity,
    time_similarity,
)
from unified_events.domain.entities import Coordinates

# ============================================================================
# Text
# ============================================================================


class TestNormalizeText:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("The  Blue-Note!", "bluenote"),
            ("AT&T Center", "att center"),
            ("Rock 'n' Roll", "rock n roll"),
            ("Jazz Nite", "jazz night"),
            ("Rock n Roll Fest", "rock n roll festival"),
            ("Paramount Theatre", "paramount theater"),
            ("The", "the"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_text(raw) == expected


class TestTextSimilarity:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_ratio(self):
        assert text_similarity("abc", "abd") == pytest.approx(2 / 3)

    def test_missing_sides(self):
        assert text_similarity(None, "") == 1.0
        assert text_similarity("Blue Note", None) == 0.0

    def test_variants_compare_equal(self):
        assert text_similarity("Jazz Night", "Jazz Nite") == 1.0
        assert text_similarity("Blue Note", "The Blue Note") == 1.0


# ============================================================================
# Date / time / location
# ============================================================================


class TestDateSimilarity:
    @pytest.mark.parametrize(("days", "score"), [(0, 1.0), (1, 0.8), (2, 0.6), (3, 0.4), (7, 0.4), (8, 0.0)])
    def test_steps(self, days, score):
        base = datetime(2025, 6, 1, 20, 0)
        other = base.replace(day=1 + days)
        assert date_similarity(base, other) == score
        assert date_similarity(other, base) == score

    def test_ignores_time_of_day(self):
        assert date_similarity(datetime(2025, 6, 1, 0, 5), datetime(2025, 6, 1, 23, 55)) == 1.0

    def test_missing(self):
        assert date_similarity(None, None) == 1.0
        assert date_similarity(datetime(2025, 6, 1), None) == 0.0


class TestTimeSimilarity:
    @pytest.mark.parametrize(
        ("minutes", "score"),
        [(0, 1.0), (5, 0.8), (30, 0.8), (31, 0.6), (60, 0.6), (120, 0.4), (121, 0.0)],
    )
    def test_steps(self, minutes, score):
        a = datetime(2025, 6, 1, 12, 0)
        b = datetime(2025, 6, 1, 12 + minutes // 60, minutes % 60)
        assert time_similarity(a, b) == score
        assert time_similarity(b, a) == score

    def test_unknown_time_counts_as_missing(self):
        a = datetime(2025, 6, 1, 0, 0)
        b = datetime(2025, 6, 1, 20, 0)
        assert time_similarity(a, b, a_known=False) == 0.0
        assert time_similarity(a, b, a_known=False, b_known=False) == 1.0


class TestLocationSimilarity:
    def test_haversine_one_degree(self):
        assert haversine_km(Coordinates(0, 0), Coordinates(1, 0)) == pytest.approx(111.195, abs=0.01)

    @pytest.mark.parametrize(
        ("dlat", "score"),
        [(0.0, 1.0), (0.005, 0.8), (0.03, 0.6), (0.05, 0.4), (0.2, 0.0)],
    )
    def test_steps(self, dlat, score):
        a = Coordinates(40.0, -74.0)
        b = Coordinates(40.0 + dlat, -74.0)
        assert location_similarity(a, b) == score
        assert location_similarity(b, a) == score

    def test_missing(self):
        assert location_similarity(None, None) == 1.0
        assert location_similarity(Coordinates(0, 0), None) == 0.0


# ============================================================================
# Weighted comparison
# ============================================================================


class TestCompare:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            SimilarityWeights(title=0.5)

    def test_identical_events(self):
        event = make_event()
        assert compare(event, event).overall == 1.0

    def test_cross_provider_listing(self):
        a = make_event(
            title="Jazz Night",
            venue_name="Blue Note",
            start=datetime(2024, 5, 1, 20, 0),
            coordinates=Coordinates(40.73, -73.99),
        )
        b = make_event(
            source="eventbrite",
            title="Jazz Nite",
            venue_name="The Blue Note",
            start=datetime(2024, 5, 1, 20, 5),
            coordinates=Coordinates(40.731, -73.991),
        )
        score = compare(a, b)
        assert score.title == 1.0
        assert score.venue == 1.0
        assert score.date == 1.0
        assert score.time == 0.8
        assert score.location == 0.8
        assert score.overall == pytest.approx(0.96)
        assert compare(b, a) == score

    def test_unrelated_events(self):
        a = make_event(title="Jazz Night", venue_name="Blue Note")
        b = make_event(title="Comedy Hour", venue_name="Laugh Factory", coordinates=Coordinates(34.09, -118.36))
        assert compare(a, b).overall < 0.5
