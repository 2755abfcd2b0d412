"""
Deduplication Engine - collapse near-duplicate events into one representative.

Algorithm:
1. Score every candidate's quality once.
2. Cluster in input order: each unclaimed event seeds a cluster and claims
   every later unclaimed event whose similarity to the seed is at or above
   the threshold.
3. Pick the highest-quality member of each cluster (first-seen on ties).
4. Re-run clustering over the representatives until nothing merges, so the
   output is a fixpoint: deduplicating it again changes nothing.

Pairs on dates more than a week apart (date sub-score 0) never merge, however
similar their other fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from unified_events.domain.entities import Event, ProviderId

from .similarity import DEFAULT_WEIGHTS, SimilarityScore, SimilarityWeights, compare

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.85

SOURCE_TRUST_BONUS: dict[str, float] = {
    ProviderId.TICKETMASTER.value: 20.0,
    ProviderId.EVENTBRITE.value: 15.0,
    ProviderId.RAPIDAPI.value: 10.0,
    ProviderId.PREDICTHQ.value: 5.0,
}


def quality_score(event: Event, source_trust: dict[str, float] | None = None) -> float:
    """Completeness score used to pick a cluster's representative."""
    trust = SOURCE_TRUST_BONUS if source_trust is None else source_trust
    score = 0.0

    if event.has_image:
        score += 20
    if event.image_count > 1:
        score += 10

    description_length = len(event.description or "")
    if description_length > 100:
        score += 15
    if description_length > 300:
        score += 10

    if event.venue_name:
        score += 15
    if event.address:
        score += 10
    if event.coordinates is not None:
        score += 10

    if event.ticket_links:
        score += 15
    if not event.is_free:
        score += 5

    if event.organizer is not None:
        if event.organizer.name:
            score += 10
        if event.organizer.avatar_url:
            score += 5

    score += trust.get(event.source, 0.0)
    return score


@dataclass
class DuplicateGroup:
    """A cluster of two or more records for the same real-world event."""

    representative: Event
    members: list[Event]

    def to_dict(self) -> dict[str, Any]:
        return {
            "representative": self.representative.id,
            "members": [m.id for m in self.members],
        }


@dataclass
class DeduplicationResult:
    unique_events: list[Event]
    duplicate_groups: list[DuplicateGroup] = field(default_factory=list)

    @property
    def duplicates_removed(self) -> int:
        return sum(len(g.members) - 1 for g in self.duplicate_groups)


class DeduplicationEngine:
    """
    Weighted-similarity clustering with quality-based representative selection.

    Example:
        >>> engine = DeduplicationEngine()
        >>> result = engine.deduplicate(candidates)
        >>> len(result.unique_events) <= len(candidates)
        True
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        weights: SimilarityWeights = DEFAULT_WEIGHTS,
        source_trust: dict[str, float] | None = None,
    ) -> None:
        if not 0.0 < threshold <= 1.0:
            msg = f"threshold must be in (0, 1], got {threshold}"
            raise ValueError(msg)
        self.threshold = threshold
        self.weights = weights
        self.source_trust = dict(SOURCE_TRUST_BONUS if source_trust is None else source_trust)

    def similarity(self, a: Event, b: Event) -> SimilarityScore:
        return compare(a, b, self.weights)

    def is_duplicate(self, a: Event, b: Event) -> bool:
        score = self.similarity(a, b)
        if score.date == 0.0:
            return False
        return score.overall >= self.threshold

    def deduplicate(self, events: list[Event]) -> DeduplicationResult:
        """Cluster ``events`` and keep one representative per cluster, in input order."""
        if not events:
            return DeduplicationResult(unique_events=[])

        for event in events:
            event.quality_score = quality_score(event, self.source_trust)

        # Clusters hold input indices, ascending, so max() breaks ties first-seen.
        clusters: list[list[int]] = [[i] for i in range(len(events))]
        passes = 0
        while True:
            passes += 1
            representatives = [self._best(events, cluster) for cluster in clusters]
            merged = self._cluster(events, representatives)
            if len(merged) == len(clusters):
                break
            clusters = [sorted(i for group in groups for i in clusters[group]) for groups in merged]

        unique: list[Event] = []
        duplicate_groups: list[DuplicateGroup] = []
        for cluster in clusters:
            best = events[self._best(events, cluster)]
            unique.append(best)
            if len(cluster) > 1:
                members = [events[i] for i in cluster]
                duplicate_groups.append(DuplicateGroup(representative=best, members=members))
                logger.debug(
                    f"Merged {len(members)} records into {best.id} (quality={best.quality_score}): "
                    f"{', '.join(m.id for m in members)}"
                )

        result = DeduplicationResult(unique_events=unique, duplicate_groups=duplicate_groups)
        logger.info(
            f"Deduplicated {len(events)} candidates into {len(unique)} events "
            f"({result.duplicates_removed} duplicates, {passes} passes)"
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _best(events: list[Event], cluster: list[int]) -> int:
        return max(cluster, key=lambda i: (events[i].quality_score or 0.0, -i))

    def _cluster(self, events: list[Event], representatives: list[int]) -> list[list[int]]:
        """
        One seeded pass over cluster representatives.

        Returns groups of positions into ``representatives``.
        """
        claimed = [False] * len(representatives)
        groups: list[list[int]] = []
        for pos, seed in enumerate(representatives):
            if claimed[pos]:
                continue
            claimed[pos] = True
            group = [pos]
            for other in range(pos + 1, len(representatives)):
                if not claimed[other] and self.is_duplicate(events[seed], events[representatives[other]]):
                    claimed[other] = True
                    group.append(other)
            groups.append(group)
        return groups
