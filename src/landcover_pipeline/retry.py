"""Bounded exponential backoff for throttled remote backends."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Tuple, TypeVar

from loguru import logger

from landcover_pipeline.errors import BackendQueryError, ComputeLimitExceeded

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_factor: float = 2.0
    jitter: float = 0.5

    def delay(self, attempt: int) -> float:
        """Sleep time before retry number *attempt* (1-based)."""
        base = self.initial_backoff * (self.backoff_factor ** (attempt - 1))
        sleep_s = min(base, self.max_backoff)
        if self.jitter > 0:
            sleep_s += random.uniform(0.0, self.jitter)
        return sleep_s


def is_retryable(exc: Exception) -> bool:
    """Pixel ceilings and transient backend errors may clear on retry."""
    if isinstance(exc, ComputeLimitExceeded):
        return True
    if isinstance(exc, BackendQueryError):
        return exc.transient
    return False


def retry_with_backoff(
    operation: Callable[[], T],
    operation_name: str,
    policy: RetryPolicy = RetryPolicy(),
    retry_on: Callable[[Exception], bool] = is_retryable,
) -> Tuple[T, int]:
    """Execute *operation* with exponential backoff retry.

    Args:
        operation: Zero-argument callable to execute.
        operation_name: Name used in log messages.
        policy: Attempt count and backoff schedule.
        retry_on: Predicate deciding whether an exception is worth retrying.

    Returns:
        Tuple of (result, attempt_count).

    Raises:
        The last exception once attempts are exhausted, or immediately for
        exceptions rejected by *retry_on*.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation(), attempt
        except Exception as e:
            if not retry_on(e) or attempt == attempts:
                if attempt > 1:
                    logger.error(f"{operation_name} failed after {attempt} attempts: {e}")
                raise
            sleep_s = policy.delay(attempt)
            logger.warning(
                f"{operation_name} error on attempt {attempt}/{attempts}: {e}; "
                f"retrying in {sleep_s:.1f}s"
            )
            time.sleep(sleep_s)
    raise AssertionError("unreachable")
