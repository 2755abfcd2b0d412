"""
Async Utilities for resilient provider calls.

Provides:
- Circuit breaker for per-provider fault tolerance
- Ordered fallback combinator (try A, then B, then C)
- Cancellation helper that waits for cancelled tasks to unwind
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(name="ticketmaster", failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """

    name: str = "provider"
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 3
    timer: Callable[[], float] = time.monotonic

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time is not None:
                if self.timer() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise CircuitOpenError(self.name, retry_after=self.recovery_timeout)

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitOpenError(
                        self.name,
                        "Circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        # Cancellation says nothing about provider health.
        if isinstance(exc_val, asyncio.CancelledError):
            return
        async with self._lock:
            if exc_val is not None:
                self._failure_count += 1
                self._last_failure_time = self.timer()

                if self._failure_count >= self.failure_threshold or self._state == "half_open":
                    if self._state != "open":
                        logger.warning(f"Circuit breaker for {self.name} opened after {self._failure_count} failures")
                    self._state = "open"
            elif self._state == "half_open":
                self._state = "closed"
                self._failure_count = 0
                logger.info(f"Circuit breaker for {self.name} closed (recovered)")
            elif self._state == "closed":
                self._failure_count = max(0, self._failure_count - 1)


# =============================================================================
# Ordered fallback
# =============================================================================


async def ordered_fallback(
    steps: Sequence[Callable[[], Awaitable[T | None]]],
    *,
    accept: Callable[[T | None], bool] = lambda value: value is not None,
    label: str = "fallback",
) -> tuple[int, T | None]:
    """
    Run ``steps`` in order and return the first accepted result.

    A step that raises is logged and skipped. Returns ``(index, value)`` of
    the winning step, or ``(-1, None)`` when every step missed or failed.

    Example:
        index, coords = await ordered_fallback(
            [lambda: mapbox.resolve(address), lambda: nominatim.resolve(address)],
            label="geocode",
        )
    """
    for index, step in enumerate(steps):
        try:
            value = await step()
        except Exception as e:
            logger.warning(f"{label}: step {index} failed: {e}")
            continue
        if accept(value):
            return index, value
    return -1, None


# =============================================================================
# Cancellation
# =============================================================================


async def cancel_and_wait(tasks: Iterable[asyncio.Task[Any]]) -> None:
    """Cancel tasks and wait until each has finished unwinding."""
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
