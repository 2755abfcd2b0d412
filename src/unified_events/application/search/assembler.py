"""
Result Assembler - filter, sort and paginate the deduplicated catalog.

Providers apply the query loosely (some ignore categories, some widen the
radius), so the assembler re-applies every filter before slicing the page.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime

from unified_events.domain.entities import (
    AggregationMetadata,
    AggregationResult,
    Event,
    EventQuery,
    ProviderOutcome,
    SortOrder,
)

from .similarity import haversine_km

logger = logging.getLogger(__name__)


class ResultAssembler:
    """Turns deduplicated events into one ``AggregationResult`` page."""

    def assemble(
        self,
        unique_events: list[Event],
        query: EventQuery,
        *,
        providers: dict[str, ProviderOutcome] | None = None,
        total_before_dedup: int | None = None,
        cache_hit: bool = False,
        timed_out: bool = False,
        elapsed_ms: float = 0.0,
    ) -> AggregationResult:
        filtered = [e for e in unique_events if self.matches(e, query)]
        ordered = self.sort(filtered, query)
        page = ordered[query.offset : query.offset + query.limit]

        before = len(unique_events) if total_before_dedup is None else total_before_dedup
        metadata = AggregationMetadata(
            total_before_dedup=before,
            total_after_dedup=len(unique_events),
            duplicates_removed=max(0, before - len(unique_events)),
            total_after_filters=len(filtered),
            provider_contributions=dict(Counter(e.source for e in filtered)),
            cache_hit=cache_hit,
            timed_out=timed_out,
            elapsed_ms=elapsed_ms,
        )
        logger.debug(
            f"Assembled page offset={query.offset} limit={query.limit}: "
            f"{len(page)}/{len(filtered)} events after filters"
        )
        return AggregationResult(
            events=page,
            total=len(filtered),
            providers=dict(providers or {}),
            metadata=metadata,
            offset=query.offset,
            limit=query.limit,
        )

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def matches(self, event: Event, query: EventQuery) -> bool:
        return (
            self._matches_keyword(event, query.keyword)
            and self._matches_categories(event, query.categories)
            and self._matches_dates(event, query)
            and self._matches_radius(event, query)
        )

    @staticmethod
    def _matches_keyword(event: Event, keyword: str | None) -> bool:
        """Every keyword term must appear somewhere in the searchable text."""
        if not keyword:
            return True
        haystack = " ".join(
            filter(
                None,
                [
                    event.title,
                    event.description,
                    event.venue_name,
                    event.category,
                    event.organizer.name if event.organizer else None,
                    *event.tags,
                ],
            )
        ).lower()
        return all(term in haystack for term in keyword.lower().split())

    @staticmethod
    def _matches_categories(event: Event, categories: tuple[str, ...]) -> bool:
        if not categories:
            return True
        labels = {event.category.lower(), *(t.lower() for t in event.tags)}
        return any(c.strip().lower() in label for c in categories for label in labels)

    @staticmethod
    def _matches_dates(event: Event, query: EventQuery) -> bool:
        day = event.start.date()
        if query.start_date and day < query.start_date:
            return False
        if query.end_date and day > query.end_date:
            return False
        return True

    @staticmethod
    def _matches_radius(event: Event, query: EventQuery) -> bool:
        # Events without coordinates cannot be placed, so they are kept.
        center = query.coordinates
        if center is None or event.coordinates is None:
            return True
        return haversine_km(center, event.coordinates) <= query.radius_km

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    @staticmethod
    def sort(events: list[Event], query: EventQuery) -> list[Event]:
        """Stable sort, so equal keys keep their deduplicated order."""
        if query.sort is SortOrder.DATE_DESC:
            return sorted(events, key=lambda e: _naive(e.start), reverse=True)
        if query.sort is SortOrder.QUALITY:
            return sorted(events, key=lambda e: (-(e.quality_score or 0.0), _naive(e.start)))
        center = query.coordinates
        if query.sort is SortOrder.DISTANCE and center is not None:
            # Events without coordinates go last.
            return sorted(
                events,
                key=lambda e: (
                    e.coordinates is None,
                    haversine_km(center, e.coordinates) if e.coordinates else 0.0,
                    _naive(e.start),
                ),
            )
        return sorted(events, key=lambda e: _naive(e.start))


def _naive(value: datetime) -> datetime:
    """Drop tzinfo so local and UTC timestamps from different providers compare."""
    return value.replace(tzinfo=None)
