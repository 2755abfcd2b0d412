"""Search pipeline: similarity, deduplication, assembly, orchestration."""

from .assembler import ResultAssembler
from .deduplication import (
    DEFAULT_THRESHOLD,
    DeduplicationEngine,
    DeduplicationResult,
    DuplicateGroup,
    quality_score,
)
from .orchestrator import MERGED_NAMESPACE, AggregationOrchestrator, OrchestratorConfig, provider_namespace
from .similarity import DEFAULT_WEIGHTS, SimilarityScore, SimilarityWeights, compare, normalize_text

__all__ = [
    "AggregationOrchestrator",
    "OrchestratorConfig",
    "MERGED_NAMESPACE",
    "provider_namespace",
    "DeduplicationEngine",
    "DeduplicationResult",
    "DuplicateGroup",
    "DEFAULT_THRESHOLD",
    "quality_score",
    "ResultAssembler",
    "SimilarityWeights",
    "SimilarityScore",
    "DEFAULT_WEIGHTS",
    "compare",
    "normalize_text",
]
