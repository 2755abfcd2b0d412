"""
Request Governor - fixed-window request budgets per provider.

Every adapter call is gated by the governor:

    governor = RequestGovernor({"ticketmaster": BudgetConfig(5000, 86400)})
    if not await governor.wait_for_admission("ticketmaster", max_wait=2.0):
        ...  # recorded as rate-limited, not retried inline

Each provider owns its own budget and lock, so admissions for different
providers never contend with each other.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetConfig:
    """Configured request budget for one provider."""

    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests < 0:
            msg = f"max_requests must be >= 0, got {self.max_requests}"
            raise ValueError(msg)
        if self.window_seconds <= 0:
            msg = f"window_seconds must be > 0, got {self.window_seconds}"
            raise ValueError(msg)


# Defaults mirror the providers' published quotas.
DEFAULT_BUDGETS: dict[str, BudgetConfig] = {
    "ticketmaster": BudgetConfig(max_requests=5000, window_seconds=24 * 60 * 60),
    "rapidapi": BudgetConfig(max_requests=500, window_seconds=60 * 60),
    "eventbrite": BudgetConfig(max_requests=1000, window_seconds=60 * 60),
    "predicthq": BudgetConfig(max_requests=1000, window_seconds=60 * 60),
}


@dataclass
class ProviderBudget:
    """Mutable window state for one provider. Guarded by ``lock``."""

    provider_id: str
    max_requests: int
    window_seconds: float
    window_start: float
    count: int = 0
    successes: int = 0
    failures: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def window_end(self) -> float:
        return self.window_start + self.window_seconds

    def roll(self, now: float) -> None:
        """Reset the window if ``now`` is past its end. Caller holds the lock."""
        if now >= self.window_end:
            # Align to the boundary so windows stay fixed-length.
            elapsed_windows = int((now - self.window_start) // self.window_seconds)
            self.window_start += elapsed_windows * self.window_seconds
            self.count = 0


class RequestGovernor:
    """
    Per-provider fixed-window rate limiter.

    - ``admit``: non-blocking; consumes one request from the budget if available.
    - ``wait_for_admission``: suspends until the window resets or ``max_wait``
      elapses, whichever comes first.

    Providers with no configured budget are always admitted.
    """

    def __init__(
        self,
        budgets: Mapping[str, BudgetConfig] | None = None,
        *,
        timer: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self._timer = timer
        self._sleep = sleep
        now = timer()
        self._budgets: dict[str, ProviderBudget] = {
            provider_id: ProviderBudget(
                provider_id=provider_id,
                max_requests=config.max_requests,
                window_seconds=config.window_seconds,
                window_start=now,
            )
            for provider_id, config in (budgets if budgets is not None else DEFAULT_BUDGETS).items()
        }

    def has_budget(self, provider_id: str) -> bool:
        return provider_id in self._budgets

    def admit(self, provider_id: str) -> bool:
        """Consume one request for ``provider_id`` if the window allows it."""
        budget = self._budgets.get(provider_id)
        if budget is None:
            return True

        with budget.lock:
            budget.roll(self._timer())
            if budget.count < budget.max_requests:
                budget.count += 1
                return True

        logger.debug(f"Governor denied {provider_id}: {budget.count}/{budget.max_requests} in window")
        return False

    def seconds_until_reset(self, provider_id: str) -> float:
        budget = self._budgets.get(provider_id)
        if budget is None:
            return 0.0
        with budget.lock:
            now = self._timer()
            budget.roll(now)
            return max(0.0, budget.window_end - now)

    async def wait_for_admission(self, provider_id: str, max_wait: float) -> bool:
        """
        Wait until ``provider_id`` is admitted or ``max_wait`` seconds pass.

        Returns:
            True when admitted, False when the ceiling elapsed first.
        """
        deadline = self._timer() + max(0.0, max_wait)
        while True:
            if self.admit(provider_id):
                return True
            remaining = deadline - self._timer()
            wait = self.seconds_until_reset(provider_id)
            if wait > remaining:
                logger.warning(f"Governor: {provider_id} budget exhausted, next window in {wait:.1f}s")
                return False
            await self._sleep(wait)

    def record_result(self, provider_id: str, success: bool) -> None:
        """Track call outcomes for ``stats``."""
        budget = self._budgets.get(provider_id)
        if budget is None:
            return
        with budget.lock:
            if success:
                budget.successes += 1
            else:
                budget.failures += 1

    def stats(self, provider_id: str) -> dict[str, Any]:
        """Current window usage and outcome counters for one provider."""
        budget = self._budgets.get(provider_id)
        if budget is None:
            return {"provider": provider_id, "limited": False}
        with budget.lock:
            now = self._timer()
            budget.roll(now)
            total = budget.successes + budget.failures
            return {
                "provider": provider_id,
                "limited": True,
                "requests_in_window": budget.count,
                "remaining": max(0, budget.max_requests - budget.count),
                "max_requests": budget.max_requests,
                "resets_in_seconds": max(0.0, budget.window_end - now),
                "successes": budget.successes,
                "failures": budget.failures,
                "success_rate": budget.successes / total if total else 0.0,
            }
