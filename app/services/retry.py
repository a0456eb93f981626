"""Retry with exponential backoff and jitter.

The policy is independent of what is being retried: callers supply the
attempt coroutine and a classifier deciding which exceptions are transient.
"""
import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class RetriesExhaustedError(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff parameters.

    Attributes:
        max_retries: Retries allowed after the first attempt
        initial_delay_ms: Delay before the first retry, jitter excluded
        max_jitter_ms: Upper bound (exclusive) of the random jitter added to each delay
        multiplier: Growth factor applied to the delay after every retry
    """
    max_retries: int = 5
    initial_delay_ms: float = 1000
    max_jitter_ms: float = 500
    multiplier: float = 2

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms <= 0:
            raise ValueError("initial_delay_ms must be > 0")
        if self.max_jitter_ms < 0:
            raise ValueError("max_jitter_ms must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_ms(self, retry_index: int) -> float:
        """Base delay before retry number retry_index (0-based), without jitter."""
        return self.initial_delay_ms * self.multiplier ** retry_index


@dataclass(frozen=True)
class RetryEvent:
    """Emitted before sleeping ahead of a retry."""
    attempt: int
    retries_left: int
    delay_ms: float
    error: BaseException


async def retry_with_backoff(
    attempt: Callable[[int], Awaitable[T]],
    is_retryable: Callable[[BaseException], bool],
    policy: BackoffPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
    on_retry: Optional[Callable[[RetryEvent], None]] = None,
) -> T:
    """
    Run attempt until it succeeds, fails permanently, or retries run out.

    Args:
        attempt: Coroutine function called with the 0-based attempt number
        is_retryable: Returns True for transient errors worth retrying
        policy: Backoff parameters
        sleep: Awaitable sleep taking seconds
        rand: Source of uniform floats in [0, 1) used for jitter
        on_retry: Observer called before each backoff sleep

    Returns:
        The first successful result of attempt

    Raises:
        RetriesExhaustedError: If the last allowed attempt still failed with a retryable error
        Exception: Any non-retryable error from attempt, unchanged
    """
    retries_left = policy.max_retries
    n = 0

    while True:
        try:
            return await attempt(n)
        except Exception as e:
            if not is_retryable(e):
                raise
            if retries_left <= 0:
                raise RetriesExhaustedError(n + 1, e) from e

            retry_index = policy.max_retries - retries_left
            delay = policy.delay_ms(retry_index) + rand() * policy.max_jitter_ms

            if on_retry is not None:
                on_retry(RetryEvent(
                    attempt=n + 1,
                    retries_left=retries_left,
                    delay_ms=delay,
                    error=e,
                ))

            await sleep(delay / 1000)
            retries_left -= 1
            n += 1
