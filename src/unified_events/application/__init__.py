"""
Application Layer - Aggregation Use Case

Contains:
- search: similarity scoring, deduplication, result assembly and the
  provider fan-out orchestrator
"""

from .search import (
    AggregationOrchestrator,
    DeduplicationEngine,
    DeduplicationResult,
    DuplicateGroup,
    OrchestratorConfig,
    ResultAssembler,
    SimilarityWeights,
)

__all__ = [
    "AggregationOrchestrator",
    "OrchestratorConfig",
    "DeduplicationEngine",
    "DeduplicationResult",
    "DuplicateGroup",
    "ResultAssembler",
    "SimilarityWeights",
]
