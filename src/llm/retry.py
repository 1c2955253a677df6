"""Exponential backoff with jitter and a provider-supplied rate-limit floor.

The retry loop knows nothing about what it retries: an operation signals a
transient failure by raising an exception whose ``retryable`` attribute is
true, and may attach ``retry_after_s`` to raise the backoff floor.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from src.llm.errors import RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """How many attempts to make and how long to wait between them."""

    max_attempts: int = 4
    base_delay_ms: int = 1000
    max_delay_ms: int = 30_000
    jitter_ms: int = 1000


class Backoff:
    """Delay calculator for one retried operation.

    ``delay_ms(attempt) = min(base * 2^(attempt-1) + jitter, max_delay_ms)``.
    The base starts at the policy's value and only ever grows: a rate-limit
    response carrying ``retry-after`` lifts it to that floor for all later
    attempts.
    """

    def __init__(self, policy: BackoffPolicy, rng: Callable[[], float] = random.random) -> None:
        self.policy = policy
        self.base_delay_ms = float(policy.base_delay_ms)
        self._rng = rng

    def raise_floor(self, retry_after_s: float | None) -> None:
        if retry_after_s is not None and retry_after_s > 0:
            self.base_delay_ms = max(self.base_delay_ms, retry_after_s * 1000)

    def delay_ms(self, attempt: int) -> float:
        jitter = self._rng() * self.policy.jitter_ms
        delay = self.base_delay_ms * 2 ** (attempt - 1) + jitter
        return min(delay, float(self.policy.max_delay_ms))


def is_retryable(exc: BaseException) -> bool:
    """True if the exception marks itself as a transient failure."""
    return bool(getattr(exc, "retryable", False))


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    policy: BackoffPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    before_attempt: Callable[[int], None] | None = None,
    description: str = "operation",
) -> T:
    """Run ``operation(attempt)`` until it succeeds or attempts run out.

    Args:
        operation: Coroutine factory receiving the 1-based attempt number.
        policy: Attempt count and delay parameters.
        sleep: Awaitable sleep taking seconds (injectable for tests).
        rng: Source of jitter in ``[0, 1)``.
        before_attempt: Hook run before each attempt; raising from it aborts
            the loop (used for cancellation checks).
        description: Label used in log messages.

    Returns:
        The first successful result.

    Raises:
        RetriesExhaustedError: All attempts failed with retryable errors.
        Exception: Any non-retryable error, unchanged and immediately.
    """
    backoff = Backoff(policy, rng=rng)
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        if before_attempt is not None:
            before_attempt(attempt)
        try:
            return await operation(attempt)
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_error = exc
            backoff.raise_floor(getattr(exc, "retry_after_s", None))
            if attempt == policy.max_attempts:
                break
            delay = backoff.delay_ms(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.0f ms",
                description, attempt, policy.max_attempts, exc, delay,
            )
            await sleep(delay / 1000)

    raise RetriesExhaustedError(policy.max_attempts, last_error) from last_error
