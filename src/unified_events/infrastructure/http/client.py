"""
Base API Client - one HTTP call per request with circuit breaker and typed failures.

Shared by every provider adapter and geocoder:
- httpx.AsyncClient management (injectable for tests)
- Circuit breaker per provider
- Status codes and transport errors mapped onto ``ProviderError`` subclasses,
  Retry-After included
- Cancellation passes straight through, aborting the in-flight request

Retries are not done here: the orchestrator retries, so that each attempt is
admitted by the request governor first.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from typing_extensions import Self

from unified_events.shared.async_utils import CircuitBreaker
from unified_events.shared.exceptions import (
    MalformedResponseError,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for external API clients.

    Subclasses set ``_service_name`` and can override:
    - ``_handle_expected_status()``: short-circuit service-specific status
      codes (e.g. 404 means "no results")
    - ``_parse_response()``: custom body decoding

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "myapi"

            async def search(self, q: str) -> dict:
                return await self._make_request("/search", params={"q": q})
    """

    _service_name: str = "api"

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker. If None, a default one
                             is created (threshold=5, recovery=60s).
            client: Pre-built AsyncClient (tests pass one with MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        if client is not None and headers:
            self._client.headers.update(headers)
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name=self._service_name, failure_threshold=5, recovery_timeout=60.0
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Make one HTTP request under the circuit breaker.

        Returns:
            Decoded JSON body (or whatever ``_handle_expected_status`` returns)

        Raises:
            ProviderError: a subclass per failure class
        """
        full_url = self._build_url(url)
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}

        async with self._circuit_breaker:
            try:
                response = await self._client.request(
                    method,
                    full_url,
                    params=clean_params,
                    json=data if method != "GET" else None,
                    headers=headers,
                    timeout=self._timeout,
                )
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(self._service_name, f"Timed out after {self._timeout:.1f}s") from e
            except httpx.RequestError as e:
                raise ProviderNetworkError(self._service_name, f"{type(e).__name__}: {e}") from e

            expected = self._handle_expected_status(response)
            if expected is not _CONTINUE:
                return expected

            self._raise_for_status(response)
            return self._parse_response(response)

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        reason = f"HTTP {status} {response.reason_phrase}".strip()
        if status in (401, 403):
            raise ProviderAuthError(self._service_name, reason, status_code=status)
        if status == 429:
            raise ProviderRateLimitedError(
                self._service_name,
                reason,
                status_code=status,
                retry_after=self._get_retry_after(response),
            )
        if status >= 500:
            raise ProviderUnavailableError(
                self._service_name,
                reason,
                status_code=status,
                retry_after=self._get_retry_after(response),
            )
        raise ProviderError(self._service_name, reason, status_code=status)

    def _handle_expected_status(self, response: httpx.Response) -> Any:
        """
        Handle expected non-200 status codes.

        Return a value to short-circuit, or the sentinel ``_CONTINUE`` to
        continue normal processing. Default: no special handling.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response) -> Any:
        """Decode the JSON body. Override for custom extraction logic."""
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseError(self._service_name, f"Invalid JSON: {e}") from e

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> float | None:
        """Retry-After in seconds, if the header is present and numeric."""
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except (ValueError, TypeError):
            return None

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
