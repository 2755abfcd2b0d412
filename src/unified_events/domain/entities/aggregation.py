"""
Aggregation result types.

ProviderResponse is what an adapter hands back for one call; ProviderOutcome is
the orchestrator's per-provider status entry; AggregationResult is the page
returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from unified_events.shared.exceptions import FailureKind, ProviderError

from .event import Event


class ProviderStatus(Enum):
    """Final status of one provider within one aggregation."""

    SUCCESS = "success"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"

    @classmethod
    def from_error(cls, error: ProviderError) -> ProviderStatus:
        if error.kind is FailureKind.TIMEOUT:
            return cls.TIMEOUT
        if error.kind is FailureKind.RATE_LIMITED:
            return cls.RATE_LIMITED
        if error.kind is FailureKind.CIRCUIT_OPEN:
            return cls.SKIPPED
        return cls.ERROR


@dataclass
class ProviderResponse:
    """Result of one adapter call. ``error`` set means ``events`` is empty."""

    events: list[Event] = field(default_factory=list)
    error: ProviderError | None = None
    dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ProviderOutcome:
    """Per-provider entry of the status map."""

    provider: str
    status: ProviderStatus
    event_count: int = 0
    cache_hit: bool = False
    attempts: int = 0
    elapsed_ms: float = 0.0
    error: str | None = None
    retry_after: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status.value,
            "event_count": self.event_count,
            "cache_hit": self.cache_hit,
            "attempts": self.attempts,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }
        if self.error:
            result["error"] = self.error
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        return result

    @classmethod
    def from_dict(cls, provider: str, data: dict[str, Any]) -> ProviderOutcome:
        return cls(
            provider=provider,
            status=ProviderStatus(data.get("status", ProviderStatus.SUCCESS.value)),
            event_count=int(data.get("event_count", 0)),
            cache_hit=bool(data.get("cache_hit", False)),
            attempts=int(data.get("attempts", 0)),
            elapsed_ms=float(data.get("elapsed_ms", 0.0)),
            error=data.get("error"),
            retry_after=data.get("retry_after"),
        )


@dataclass
class AggregationMetadata:
    """Counts and timing attached to every result."""

    total_before_dedup: int = 0
    total_after_dedup: int = 0
    duplicates_removed: int = 0
    total_after_filters: int = 0
    provider_contributions: dict[str, int] = field(default_factory=dict)
    cache_hit: bool = False
    timed_out: bool = False
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_before_dedup": self.total_before_dedup,
            "total_after_dedup": self.total_after_dedup,
            "duplicates_removed": self.duplicates_removed,
            "total_after_filters": self.total_after_filters,
            "provider_contributions": dict(self.provider_contributions),
            "cache_hit": self.cache_hit,
            "timed_out": self.timed_out,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


@dataclass
class AggregationResult:
    """One page of merged events plus provider status and timing."""

    events: list[Event]
    total: int
    providers: dict[str, ProviderOutcome] = field(default_factory=dict)
    metadata: AggregationMetadata = field(default_factory=AggregationMetadata)
    offset: int = 0
    limit: int = 50

    @property
    def errors(self) -> dict[str, str]:
        """Error summary keyed by provider."""
        return {p: o.error for p, o in self.providers.items() if o.error}

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.events) < self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [event.to_dict() for event in self.events],
            "total": self.total,
            "offset": self.offset,
            "limit": self.limit,
            "has_more": self.has_more,
            "providers": {p: o.to_dict() for p, o in self.providers.items()},
            "errors": self.errors,
            "metadata": self.metadata.to_dict(),
        }
