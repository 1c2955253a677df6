"""Exception types raised by the LLM client and the analysis stages."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all analysis pipeline errors."""


class LLMError(PipelineError):
    """A failed exchange with the LLM provider."""

    retryable: bool = False

    def __init__(self, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_s = retry_after_s


class NetworkTimeoutError(LLMError):
    """The request timed out or never reached the provider."""

    retryable = True


class ProviderServerError(LLMError):
    """The provider answered with a 5xx status."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(message, retry_after_s=retry_after_s)
        self.status_code = status_code


class RateLimitedError(ProviderServerError):
    """HTTP 429; ``retry_after_s`` holds the provider's suggested delay, if any."""


class ProviderClientError(LLMError):
    """A 4xx other than 429 (bad request, auth failure). Never retried."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(LLMError):
    """The provider answered but the message content was empty or missing."""

    retryable = True


class RetriesExhaustedError(LLMError):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"LLM request failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class UnparsableOutputError(PipelineError):
    """Model output was present but not valid JSON of the expected shape."""


class InputTooShortError(PipelineError):
    """Normalized input is too short for meaningful analysis."""


class AnalysisCancelledError(PipelineError):
    """The caller signalled cancellation."""
