"""
Unit tests for the retry-with-backoff combinator.

The attempt function and sleep are fakes, so no test waits on a real clock.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from app.services.retry import (
    BackoffPolicy,
    RetriesExhaustedError,
    retry_with_backoff,
)


class TransientError(Exception):
    pass


class PermanentError(Exception):
    pass


def is_transient(error: BaseException) -> bool:
    return isinstance(error, TransientError)


@pytest.mark.unit
class TestBackoffPolicy:
    """Test BackoffPolicy validation and delay growth."""

    def test_defaults(self):
        policy = BackoffPolicy()
        assert policy.max_retries == 5
        assert policy.initial_delay_ms == 1000
        assert policy.max_jitter_ms == 500

    def test_delay_doubles_per_retry(self):
        policy = BackoffPolicy(initial_delay_ms=1000)
        assert [policy.delay_ms(i) for i in range(4)] == [1000, 2000, 4000, 8000]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"initial_delay_ms": 0},
            {"max_jitter_ms": -1},
            {"multiplier": 0.5},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)


@pytest.mark.unit
class TestRetryWithBackoff:
    """Test the retry loop against scripted attempt outcomes."""

    @pytest.fixture
    def sleep(self):
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_success_first_attempt_does_not_sleep(self, sleep):
        attempt = AsyncMock(return_value="done")

        result = await retry_with_backoff(attempt, is_transient, BackoffPolicy(), sleep=sleep)

        assert result == "done"
        attempt.assert_awaited_once_with(0)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self, sleep):
        attempt = AsyncMock(side_effect=[TransientError(), TransientError(), "done"])

        result = await retry_with_backoff(
            attempt, is_transient, BackoffPolicy(), sleep=sleep, rand=lambda: 0.0
        )

        assert result == "done"
        assert [c.args[0] for c in attempt.await_args_list] == [0, 1, 2]
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
    async def test_exhaustion_makes_max_retries_plus_one_calls(self, sleep, max_retries):
        error = TransientError("slow down")
        attempt = AsyncMock(side_effect=error)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await retry_with_backoff(
                attempt, is_transient, BackoffPolicy(max_retries=max_retries), sleep=sleep
            )

        assert attempt.await_count == max_retries + 1
        assert sleep.await_count == max_retries
        assert exc_info.value.attempts == max_retries + 1
        assert exc_info.value.last_error is error

    @pytest.mark.asyncio
    async def test_permanent_error_is_raised_without_retry(self, sleep):
        attempt = AsyncMock(side_effect=PermanentError("boom"))

        with pytest.raises(PermanentError):
            await retry_with_backoff(attempt, is_transient, BackoffPolicy(), sleep=sleep)

        attempt.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_jitter_is_added_within_bounds(self, sleep):
        attempt = AsyncMock(side_effect=[TransientError()] * 3 + ["done"])
        rand_values = iter([0.0, 0.5, 0.999])

        await retry_with_backoff(
            attempt,
            is_transient,
            BackoffPolicy(initial_delay_ms=100, max_jitter_ms=500),
            sleep=sleep,
            rand=lambda: next(rand_values),
        )

        delays_ms = [c.args[0] * 1000 for c in sleep.await_args_list]
        assert delays_ms == pytest.approx([100.0, 450.0, 400 + 499.5])
        for i, delay in enumerate(delays_ms):
            base = 100 * 2 ** i
            assert base <= delay < base + 500

    @pytest.mark.asyncio
    async def test_on_retry_receives_events(self, sleep):
        attempt = AsyncMock(side_effect=[TransientError(), TransientError(), "done"])
        on_retry = Mock()

        await retry_with_backoff(
            attempt,
            is_transient,
            BackoffPolicy(max_retries=3),
            sleep=sleep,
            rand=lambda: 0.0,
            on_retry=on_retry,
        )

        events = [c.args[0] for c in on_retry.call_args_list]
        assert [e.attempt for e in events] == [1, 2]
        assert [e.retries_left for e in events] == [3, 2]
        assert [e.delay_ms for e in events] == [1000, 2000]
        assert all(isinstance(e.error, TransientError) for e in events)

    @pytest.mark.asyncio
    async def test_cancellation_during_sleep_propagates(self):
        attempt = AsyncMock(side_effect=[TransientError(), "done"])
        sleep = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await retry_with_backoff(attempt, is_transient, BackoffPolicy(), sleep=sleep)

        attempt.assert_awaited_once()
