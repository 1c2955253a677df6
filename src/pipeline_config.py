"""Pipeline configuration: the immutable value passed into every analysis run."""

from __future__ import annotations

from dataclasses import dataclass

from src.config import Settings


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for the document analysis pipeline.

    Constructed once (usually via :meth:`from_settings`) and handed to the
    analyzer; nothing downstream consults the environment.  Defaults mirror
    the documented behaviour of the service.
    """

    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"

    extraction_temperature: float = 0.2
    categorization_temperature: float = 0.3
    summarization_temperature: float = 0.5

    max_output_tokens: int = 8192
    request_timeout_s: float = 90.0
    max_retries: int = 4

    # Backoff: min(base * 2^(attempt-1) + jitter, max)
    base_delay_ms: int = 1000
    max_delay_ms: int = 30_000
    jitter_ms: int = 1000

    chunk_size: int = 12_000
    max_input_chars: int = 360_000
    max_chunks: int = 30
    min_content_length: int = 20
    min_task_count: int = 1

    # Pause before every extraction call except the first chunk's.
    chunk_delay_ms: int = 0
    # 1 = strictly sequential extraction.
    extraction_concurrency: int = 1

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.chunk_size <= 0 or self.max_input_chars <= 0 or self.max_chunks <= 0:
            raise ValueError("chunk_size, max_input_chars and max_chunks must be positive")
        if self.max_output_tokens <= 0 or self.request_timeout_s <= 0:
            raise ValueError("max_output_tokens and request_timeout_s must be positive")
        if self.extraction_concurrency < 1:
            raise ValueError("extraction_concurrency must be at least 1")
        if min(self.base_delay_ms, self.max_delay_ms, self.jitter_ms, self.chunk_delay_ms) < 0:
            raise ValueError("delays must not be negative")
        if self.min_content_length < 0:
            raise ValueError("min_content_length must not be negative")
        if self.min_task_count < 1:
            raise ValueError("min_task_count must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        """Build a config from application settings."""
        return cls(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            extraction_temperature=settings.extraction_temperature,
            categorization_temperature=settings.categorization_temperature,
            summarization_temperature=settings.summarization_temperature,
            max_output_tokens=settings.max_output_tokens,
            request_timeout_s=settings.request_timeout_s,
            max_retries=settings.max_retries,
            chunk_size=settings.chunk_size,
            max_input_chars=settings.max_input_chars,
            max_chunks=settings.max_chunks,
            min_content_length=settings.min_content_length,
            min_task_count=settings.min_task_count,
            chunk_delay_ms=settings.chunk_delay_ms,
            extraction_concurrency=settings.extraction_concurrency,
        )
