"""Retry policy and combinator for calls to external routing services."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base_delay: float, attempt: int) -> float:
    """Delay before the next attempt: ``base_delay * attempt``."""
    return base_delay * attempt


def is_transport_error(error: BaseException) -> bool:
    """Only transport-level failures (timeouts, refused connections, DNS) are worth retrying."""
    return isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: Callable[[float, int], float] = field(default=linear_backoff)
    is_retryable: Callable[[BaseException], bool] = field(default=is_transport_error)

    def delay_for(self, attempt: int) -> float:
        return self.backoff(self.base_delay, attempt)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.oracle_max_attempts,
            base_delay=settings.oracle_backoff_seconds,
        )


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Optional[Callable[[int], None]] = None,
    description: str = "request",
) -> T:
    """Run ``func`` under ``policy``.

    Non-retryable errors propagate untouched on the attempt they occur. When
    the budget is spent on retryable errors, ``RetryExhausted`` is raised,
    chained to the last underlying error.
    """
    attempt = 0
    while True:
        attempt += 1
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            return func()
        except Exception as error:
            if not policy.is_retryable(error):
                raise
            if attempt >= policy.max_attempts:
                logger.warning(f"{description} failed after {attempt} attempts: {error}")
                raise RetryExhausted(attempt, error) from error
            wait_time = policy.delay_for(attempt)
            logger.warning(
                f"{description} transport failure, retrying in {wait_time:.1f}s "
                f"(attempt {attempt}/{policy.max_attempts}): {error}"
            )
            sleep(wait_time)
