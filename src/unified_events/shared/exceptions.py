"""
Unified Exception Hierarchy for the event aggregation pipeline.

Exception Hierarchy:
    EventAggregationError (base)
    ├── ProviderError
    │   ├── ProviderAuthError
    │   ├── ProviderTimeoutError
    │   ├── ProviderRateLimitedError
    │   ├── ProviderUnavailableError
    │   ├── ProviderNetworkError
    │   ├── MalformedResponseError
    │   └── CircuitOpenError
    ├── CacheError
    ├── AggregationTimeoutError
    ├── ValidationError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    └── ConfigurationError

ProviderError and CacheError are always recovered inside the pipeline.
ConfigurationError is the only one that escapes ``aggregate()``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""

    PROVIDER = "provider"
    CACHE = "cache"
    VALIDATION = "validation"
    CONFIGURATION = "config"
    TIMEOUT = "timeout"


class FailureKind(Enum):
    """Failure classes reported by provider adapters."""

    AUTH = "auth"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    NETWORK = "network"
    MALFORMED = "malformed"
    HTTP = "http"
    CIRCUIT_OPEN = "circuit_open"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""

    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class EventAggregationError(Exception):
    """
    Base exception for all aggregation pipeline errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.PROVIDER,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(EventAggregationError):
    """Failure of a single provider call. Always downgraded to a status entry."""

    kind: FailureKind = FailureKind.HTTP

    def __init__(
        self,
        provider_id: str,
        message: str,
        *,
        kind: FailureKind | None = None,
        retry_after: float | None = None,
        status_code: int | None = None,
        retryable: bool = False,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        if retry_after is not None:
            ctx = ErrorContext(
                operation=ctx.operation,
                input_value=ctx.input_value,
                suggestion=ctx.suggestion,
                retry_after=retry_after,
                metadata=ctx.metadata,
            )
        super().__init__(
            f"{provider_id}: {message}",
            context=ctx,
            severity=ErrorSeverity.TRANSIENT if retryable else ErrorSeverity.ERROR,
            category=ErrorCategory.PROVIDER,
            retryable=retryable,
        )
        self.provider_id = provider_id
        if kind is not None:
            self.kind = kind
        self.status_code = status_code

    @property
    def retry_after(self) -> float | None:
        return self.context.retry_after

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider_id
        result["kind"] = self.kind.value
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


class ProviderAuthError(ProviderError):
    """Raised on 401/403 or missing credentials."""

    kind = FailureKind.AUTH

    def __init__(self, provider_id: str, message: str = "Authentication failed", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=False, **kwargs)


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its timeout."""

    kind = FailureKind.TIMEOUT

    def __init__(self, provider_id: str, message: str = "Request timed out", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=True, **kwargs)


class ProviderRateLimitedError(ProviderError):
    """Raised when the upstream answers 429."""

    kind = FailureKind.RATE_LIMITED

    def __init__(self, provider_id: str, message: str = "Rate limit exceeded", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=True, **kwargs)


class ProviderUnavailableError(ProviderError):
    """Raised on 5xx responses."""

    kind = FailureKind.UNAVAILABLE

    def __init__(self, provider_id: str, message: str = "Service temporarily unavailable", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=True, **kwargs)


class ProviderNetworkError(ProviderError):
    """Raised for connection-level failures."""

    kind = FailureKind.NETWORK

    def __init__(self, provider_id: str, message: str = "Network connection failed", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=True, **kwargs)


class MalformedResponseError(ProviderError):
    """Raised when the payload cannot be decoded or has the wrong shape."""

    kind = FailureKind.MALFORMED

    def __init__(self, provider_id: str, message: str = "Malformed response", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=False, **kwargs)


class CircuitOpenError(ProviderError):
    """Raised when the provider's circuit breaker rejects the call."""

    kind = FailureKind.CIRCUIT_OPEN

    def __init__(self, provider_id: str, message: str = "Circuit breaker is open", **kwargs: Any) -> None:
        super().__init__(provider_id, message, retryable=False, **kwargs)


# =============================================================================
# Cache / Timeout Errors
# =============================================================================


class CacheError(EventAggregationError):
    """Durable store unreachable or payload not serializable. Treated as a miss."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation="cache", input_value=key),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CACHE,
            retryable=False,
        )
        self.key = key


class AggregationTimeoutError(EventAggregationError):
    """Soft deadline hit: some providers did not answer in time."""

    def __init__(self, timeout: float, pending: list[str]) -> None:
        super().__init__(
            f"Aggregation timed out after {timeout:.1f}s; pending: {', '.join(pending) or 'none'}",
            context=ErrorContext(operation="aggregate", metadata={"pending": pending}),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.TIMEOUT,
            retryable=True,
        )
        self.timeout = timeout
        self.pending = pending


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(EventAggregationError):
    """Base class for validation errors."""

    def __init__(self, message: str, *, context: ErrorContext | None = None) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when a search query cannot be executed."""

    def __init__(self, reason: str, *, context: ErrorContext | None = None) -> None:
        super().__init__(f"Invalid query: {reason}", context=context)


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is invalid."""

    def __init__(self, param_name: str, value: Any, expected: str) -> None:
        ctx = ErrorContext(input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )
        self.param_name = param_name


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(EventAggregationError):
    """Raised for configuration-related errors (e.g. no providers configured)."""

    def __init__(self, message: str, *, context: ErrorContext | None = None) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


# =============================================================================
# Retry helpers
# =============================================================================


def is_retryable_error(error: Exception) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, EventAggregationError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)


def get_retry_delay(error: Exception, attempt: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)
        base_delay: Delay for the first retry
        max_delay: Upper bound for the returned delay

    Returns:
        Delay in seconds before next retry
    """
    if isinstance(error, EventAggregationError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2**attempt)
    jitter = random.uniform(0, 0.1 * delay)
    return min(delay + jitter, max_delay)
