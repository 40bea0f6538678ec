"""
utils/retry.py — Exponential-backoff retry policy for per-record operations.

Uses tenacity under the hood. The policy decides on tagged results rather
than raised exceptions: an operation returns a value whose ``retryable``
attribute says whether another attempt is worthwhile.

Usage:
    from custmig_pipeline.utils.retry import RetryPolicy

    policy = RetryPolicy(max_attempts=3, base_delay=2.0)
    policy.delays()          # [2.0, 4.0]  (waits between the three attempts)

    result = await policy.retrying(sleep=asyncio.sleep)(op)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from custmig_shared.config import Settings

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Delay before attempt n+1: base_delay * multiplier^(n-1), capped at max_delay.
    Default: 2 s, 4 s, 8 s, …
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            multiplier=settings.retry_multiplier,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt_number: int) -> float:
        """Seconds to wait after failed attempt `attempt_number` (1-based)."""
        return min(self.base_delay * self.multiplier ** (attempt_number - 1), self.max_delay)

    def delays(self) -> list[float]:
        """All waits a fully exhausted record goes through."""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]

    def retrying(
        self,
        *,
        sleep: SleepFn = asyncio.sleep,
        before_sleep: Callable[[RetryCallState], Any] | None = None,
    ) -> AsyncRetrying:
        """
        Build a tenacity AsyncRetrying that retries while the result is retryable.

        Once attempts are exhausted the last result is returned instead of
        raising RetryError, so callers always receive a tagged result.
        """
        return AsyncRetrying(
            sleep=sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_result(lambda result: bool(getattr(result, "retryable", False))),
            retry_error_callback=lambda state: state.outcome.result() if state.outcome else None,
            before_sleep=before_sleep,
            reraise=True,
        )
