"""Resilient chat-completion client: timeout, retry with backoff, cancellation."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
)

from src.llm.errors import (
    AnalysisCancelledError,
    LLMError,
    MalformedResponseError,
    NetworkTimeoutError,
    ProviderClientError,
    ProviderServerError,
    RateLimitedError,
)
from src.llm.retry import BackoffPolicy, retry_async
from src.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fixed sampling parameters sent with every request
TOP_P = 1
FREQUENCY_PENALTY = 0
PRESENCE_PENALTY = 0


@dataclass(frozen=True)
class LLMRequest:
    """One prompt exchange. ``None`` fields fall back to the client config."""

    system_prompt: str
    user_prompt: str
    temperature: float
    max_retries: int | None = None
    timeout_s: float | None = None
    max_tokens: int | None = None


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class UsageMeter:
    """Running token totals for one analysis run."""

    def __init__(self) -> None:
        self.calls = 0
        self.total = TokenUsage()

    def record(self, usage: TokenUsage | None) -> None:
        self.calls += 1
        if usage is not None:
            self.total = self.total + usage


@dataclass(frozen=True)
class LLMResponse:
    """Non-empty reply content plus usage, when the provider reports it."""

    content: str
    usage: TokenUsage | None = None


def parse_retry_after(headers: httpx.Headers | None) -> float | None:
    """Read the provider's suggested delay, in seconds, from response headers.

    Understands ``retry-after-ms``, ``retry-after`` as seconds, and
    ``retry-after`` as an HTTP date.
    """
    if headers is None:
        return None

    retry_ms = headers.get("retry-after-ms")
    if retry_ms:
        try:
            return max(0.0, float(retry_ms) / 1000)
        except ValueError:
            pass

    retry_after = headers.get("retry-after")
    if not retry_after:
        return None
    try:
        return max(0.0, float(retry_after))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def classify_error(exc: Exception) -> LLMError:
    """Map an SDK exception onto the pipeline's error taxonomy."""
    if isinstance(exc, APITimeoutError):
        return NetworkTimeoutError(f"LLM request timed out: {exc}")
    if isinstance(exc, APIConnectionError):
        return NetworkTimeoutError(f"could not reach LLM provider: {exc}")
    if isinstance(exc, APIStatusError):
        status = exc.status_code
        if status == 429:
            return RateLimitedError(
                f"rate limited by LLM provider: {exc.message}",
                status_code=status,
                retry_after_s=parse_retry_after(exc.response.headers),
            )
        if status >= 500:
            return ProviderServerError(
                f"LLM provider error {status}: {exc.message}", status_code=status
            )
        return ProviderClientError(
            f"LLM request rejected ({status}): {exc.message}", status_code=status
        )
    raise TypeError(f"not an LLM provider error: {exc!r}")


async def run_cancellable(
    awaitable: Awaitable[T], cancel_event: asyncio.Event | None
) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    The underlying task is cancelled as soon as the event is set, so an
    in-flight HTTP request is torn down rather than left to finish.

    Raises:
        AnalysisCancelledError: The event fired before completion.
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise AnalysisCancelledError("analysis cancelled")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if work.done():
            return work.result()
        raise AnalysisCancelledError("analysis cancelled")
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()


class ResilientLLMClient:
    """Single-exchange chat client that masks transient provider failures.

    Every call builds a fresh request per attempt.  Timeouts, connection
    failures, 5xx, 429 and empty replies are retried with exponential
    backoff; other 4xx responses abort at once.  Once attempts run out a
    :class:`~src.llm.errors.RetriesExhaustedError` is raised; degrading is
    left to the caller.

    The only state kept between calls is configuration and the (lazily
    created) HTTP connection pool, so one instance can serve concurrent
    analyses.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config
        self._http_client = http_client
        self._sleep = sleep
        self._rng = rng
        self._sdk: AsyncOpenAI | None = None

    @property
    def sdk(self) -> AsyncOpenAI:
        if self._sdk is None:
            self._sdk = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.request_timeout_s,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._sdk

    async def aclose(self) -> None:
        if self._sdk is not None:
            await self._sdk.close()
            self._sdk = None

    async def __aenter__(self) -> ResilientLLMClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def build_payload(self, request: LLMRequest) -> dict[str, Any]:
        """Request body for one attempt (model, messages, sampling)."""
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens or self.config.max_output_tokens,
            "top_p": TOP_P,
            "frequency_penalty": FREQUENCY_PENALTY,
            "presence_penalty": PRESENCE_PENALTY,
        }

    async def complete(
        self,
        request: LLMRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> LLMResponse:
        """Run one prompt exchange, retrying transient failures.

        Args:
            request: Prompts and sampling for this exchange.
            cancel_event: Optional signal checked before every attempt and
                raced against the request and the backoff sleep.

        Returns:
            The reply content (never empty) and token usage.

        Raises:
            RetriesExhaustedError: Retryable failures on every attempt.
            ProviderClientError: Non-retryable 4xx response.
            AnalysisCancelledError: ``cancel_event`` was set.
        """
        policy = BackoffPolicy(
            max_attempts=(
                request.max_retries
                if request.max_retries is not None
                else self.config.max_retries
            ),
            base_delay_ms=self.config.base_delay_ms,
            max_delay_ms=self.config.max_delay_ms,
            jitter_ms=self.config.jitter_ms,
        )
        timeout = (
            request.timeout_s if request.timeout_s is not None else self.config.request_timeout_s
        )

        def check_cancelled(attempt: int) -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelledError(f"analysis cancelled before attempt {attempt}")

        async def sleep(seconds: float) -> None:
            await run_cancellable(self._sleep(seconds), cancel_event)

        async def attempt(number: int) -> LLMResponse:
            payload = self.build_payload(request)
            try:
                completion = await run_cancellable(
                    self.sdk.chat.completions.create(**payload, timeout=timeout),
                    cancel_event,
                )
            except (APIConnectionError, APIStatusError) as exc:
                raise classify_error(exc) from exc
            return self._to_response(completion)

        return await retry_async(
            attempt,
            policy,
            sleep=sleep,
            rng=self._rng,
            before_attempt=check_cancelled,
            description=f"LLM request ({self.config.model})",
        )

    @staticmethod
    def _to_response(completion: Any) -> LLMResponse:
        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("LLM response has no message content")

        usage = None
        raw_usage = getattr(completion, "usage", None)
        if raw_usage is not None:
            usage = TokenUsage(
                prompt_tokens=raw_usage.prompt_tokens or 0,
                completion_tokens=raw_usage.completion_tokens or 0,
                total_tokens=raw_usage.total_tokens or 0,
            )
        return LLMResponse(content=content, usage=usage)
