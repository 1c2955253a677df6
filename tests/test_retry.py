"""Tests for backoff arithmetic and the generic retry loop."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.llm.errors import (
    MalformedResponseError,
    NetworkTimeoutError,
    ProviderClientError,
    RateLimitedError,
    RetriesExhaustedError,
)
from src.llm.retry import Backoff, BackoffPolicy, is_retryable, retry_async


class TestBackoff:
    def test_exponential_growth_without_jitter(self) -> None:
        backoff = Backoff(BackoffPolicy(base_delay_ms=1000, jitter_ms=1000), rng=lambda: 0.0)
        assert [backoff.delay_ms(n) for n in (1, 2, 3)] == [1000, 2000, 4000]

    def test_jitter_added(self) -> None:
        backoff = Backoff(BackoffPolicy(base_delay_ms=1000, jitter_ms=1000), rng=lambda: 0.5)
        assert backoff.delay_ms(1) == 1500

    def test_capped_at_max_delay(self) -> None:
        backoff = Backoff(BackoffPolicy(base_delay_ms=1000, max_delay_ms=30_000), rng=lambda: 0.99)
        assert backoff.delay_ms(10) == 30_000

    def test_retry_after_raises_floor(self) -> None:
        backoff = Backoff(BackoffPolicy(base_delay_ms=1000), rng=lambda: 0.0)
        backoff.raise_floor(5)
        assert backoff.delay_ms(1) == 5000
        assert backoff.delay_ms(2) == 10_000

    def test_floor_never_lowers_base(self) -> None:
        backoff = Backoff(BackoffPolicy(base_delay_ms=1000), rng=lambda: 0.0)
        backoff.raise_floor(0.2)
        backoff.raise_floor(None)
        assert backoff.base_delay_ms == 1000


class TestIsRetryable:
    def test_taxonomy(self) -> None:
        assert is_retryable(NetworkTimeoutError("t"))
        assert is_retryable(RateLimitedError("r", status_code=429))
        assert is_retryable(MalformedResponseError("m"))
        assert not is_retryable(ProviderClientError("c", status_code=400))
        assert not is_retryable(ValueError("plain"))


class TestRetryAsync:
    def _policy(self, attempts: int = 3) -> BackoffPolicy:
        return BackoffPolicy(max_attempts=attempts, base_delay_ms=1000, jitter_ms=0)

    def test_returns_first_success(self) -> None:
        operation = AsyncMock(side_effect=[NetworkTimeoutError("slow"), "ok"])
        sleep = AsyncMock()
        result = asyncio.run(retry_async(operation, self._policy(), sleep=sleep))
        assert result == "ok"
        assert operation.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    def test_passes_attempt_number(self) -> None:
        operation = AsyncMock(side_effect=[MalformedResponseError("empty"), "ok"])
        asyncio.run(retry_async(operation, self._policy(), sleep=AsyncMock()))
        assert [c.args[0] for c in operation.await_args_list] == [1, 2]

    def test_exhaustion_raises_with_last_error(self) -> None:
        last = NetworkTimeoutError("third")
        operation = AsyncMock(
            side_effect=[NetworkTimeoutError("first"), NetworkTimeoutError("second"), last]
        )
        sleep = AsyncMock()
        with pytest.raises(RetriesExhaustedError) as exc_info:
            asyncio.run(retry_async(operation, self._policy(3), sleep=sleep))
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        # No sleep after the final attempt
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    def test_non_retryable_propagates_immediately(self) -> None:
        operation = AsyncMock(side_effect=ProviderClientError("bad request", status_code=400))
        sleep = AsyncMock()
        with pytest.raises(ProviderClientError):
            asyncio.run(retry_async(operation, self._policy(), sleep=sleep))
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    def test_before_attempt_can_abort(self) -> None:
        operation = AsyncMock(side_effect=[NetworkTimeoutError("slow"), "ok"])

        def before(attempt: int) -> None:
            if attempt == 2:
                raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            asyncio.run(
                retry_async(operation, self._policy(), sleep=AsyncMock(), before_attempt=before)
            )
        assert operation.await_count == 1

    def test_single_attempt_policy(self) -> None:
        operation = AsyncMock(side_effect=NetworkTimeoutError("slow"))
        with pytest.raises(RetriesExhaustedError):
            asyncio.run(retry_async(operation, self._policy(1), sleep=AsyncMock()))
        assert operation.await_count == 1
