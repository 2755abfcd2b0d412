"""
Shared module for the event aggregation pipeline.

Provides:
- Unified exception hierarchy
- Async utilities (circuit breaker, ordered fallback)
- Per-provider request governor
- Runtime settings
"""

from .async_utils import (
    CircuitBreaker,
    cancel_and_wait,
    ordered_fallback,
)
from .config import ALL_PROVIDERS, Settings
from .exceptions import (
    AggregationTimeoutError,
    CacheError,
    CircuitOpenError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    EventAggregationError,
    FailureKind,
    InvalidParameterError,
    InvalidQueryError,
    MalformedResponseError,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)
from .rate_limiter import DEFAULT_BUDGETS, BudgetConfig, ProviderBudget, RequestGovernor

__all__ = [
    # Exceptions
    "EventAggregationError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "FailureKind",
    "ProviderError",
    "ProviderAuthError",
    "ProviderTimeoutError",
    "ProviderRateLimitedError",
    "ProviderUnavailableError",
    "ProviderNetworkError",
    "MalformedResponseError",
    "CircuitOpenError",
    "CacheError",
    "AggregationTimeoutError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "ConfigurationError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "CircuitBreaker",
    "ordered_fallback",
    "cancel_and_wait",
    # Rate limiting
    "BudgetConfig",
    "ProviderBudget",
    "RequestGovernor",
    "DEFAULT_BUDGETS",
    # Settings
    "Settings",
    "ALL_PROVIDERS",
]
