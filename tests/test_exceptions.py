"""Tests for the exception hierarchy and retry helpers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from unified_events.shared.exceptions import (
    AggregationTimeoutError,
    CacheError,
    CircuitOpenError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
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

# ============================================================================
# Hierarchy
# ============================================================================


class TestHierarchy:
    @pytest.mark.parametrize(
        ("cls", "kind", "retryable"),
        [
            (ProviderAuthError, FailureKind.AUTH, False),
            (ProviderTimeoutError, FailureKind.TIMEOUT, True),
            (ProviderRateLimitedError, FailureKind.RATE_LIMITED, True),
            (ProviderUnavailableError, FailureKind.UNAVAILABLE, True),
            (ProviderNetworkError, FailureKind.NETWORK, True),
            (MalformedResponseError, FailureKind.MALFORMED, False),
            (CircuitOpenError, FailureKind.CIRCUIT_OPEN, False),
        ],
    )
    def test_provider_error_kinds(self, cls, kind, retryable):
        error = cls("ticketmaster")
        assert isinstance(error, ProviderError)
        assert isinstance(error, EventAggregationError)
        assert error.kind is kind
        assert error.retryable is retryable
        assert error.provider_id == "ticketmaster"
        assert str(error).startswith("ticketmaster: ")

    def test_plain_provider_error_is_http_kind(self):
        error = ProviderError("eventbrite", "HTTP 400 Bad Request", status_code=400)
        assert error.kind is FailureKind.HTTP
        assert error.status_code == 400
        assert not error.retryable

    def test_explicit_kind_overrides_class_default(self):
        error = ProviderError("rapidapi", "boom", kind=FailureKind.NETWORK)
        assert error.kind is FailureKind.NETWORK

    def test_validation_errors(self):
        assert isinstance(InvalidQueryError("bad"), ValidationError)
        error = InvalidParameterError("limit", 0, "1 <= limit <= 200")
        assert error.param_name == "limit"
        assert "limit" in str(error)
        assert error.context.suggestion == "Expected 1 <= limit <= 200"

    def test_configuration_error_category(self):
        assert ConfigurationError("none").category is ErrorCategory.CONFIGURATION

    def test_cache_error_keeps_key(self):
        error = CacheError("disk full", key="provider:ticketmaster:abc")
        assert error.key == "provider:ticketmaster:abc"
        assert error.category is ErrorCategory.CACHE

    def test_aggregation_timeout_lists_pending(self):
        error = AggregationTimeoutError(15.0, ["rapidapi", "predicthq"])
        assert error.pending == ["rapidapi", "predicthq"]
        assert "rapidapi, predicthq" in str(error)


# ============================================================================
# Serialization
# ============================================================================


class TestToDict:
    def test_provider_error_to_dict(self):
        error = ProviderRateLimitedError("ticketmaster", status_code=429, retry_after=30.0)
        data = error.to_dict()
        assert data["provider"] == "ticketmaster"
        assert data["kind"] == "rate_limited"
        assert data["status_code"] == 429
        assert data["retry_after_seconds"] == 30.0
        assert data["retryable"] is True

    def test_retry_after_merges_into_context(self):
        ctx = ErrorContext(operation="search", suggestion="wait")
        error = ProviderUnavailableError("eventbrite", context=ctx, retry_after=5.0)
        assert error.retry_after == 5.0
        assert error.context.operation == "search"
        assert error.context.suggestion == "wait"


# ============================================================================
# Retry helpers
# ============================================================================


class TestRetryHelpers:
    def test_is_retryable_uses_flag(self):
        assert is_retryable_error(ProviderTimeoutError("x"))
        assert not is_retryable_error(ProviderAuthError("x"))

    def test_is_retryable_matches_foreign_messages(self):
        assert is_retryable_error(RuntimeError("Connection reset by peer"))
        assert not is_retryable_error(RuntimeError("division by zero"))

    def test_exponential_backoff(self):
        with patch("unified_events.shared.exceptions.random.uniform", return_value=0.0):
            assert get_retry_delay(ProviderTimeoutError("x"), 0, base_delay=0.5) == 0.5
            assert get_retry_delay(ProviderTimeoutError("x"), 2, base_delay=0.5) == 2.0

    def test_backoff_is_capped(self):
        assert get_retry_delay(ProviderTimeoutError("x"), 10, base_delay=1.0, max_delay=5.0) == 5.0

    def test_retry_after_overrides_base(self):
        error = ProviderRateLimitedError("x", retry_after=3.0)
        with patch("unified_events.shared.exceptions.random.uniform", return_value=0.0):
            assert get_retry_delay(error, 0, base_delay=0.5, max_delay=30.0) == 3.0
