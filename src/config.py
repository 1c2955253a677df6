from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    The analysis pipeline never reads these directly; they are turned into
    an immutable :class:`~src.pipeline_config.PipelineConfig` at the edge.
    """

    # LLM provider (OpenAI-compatible chat completions endpoint)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"

    # Sampling temperature per stage
    extraction_temperature: float = 0.2
    categorization_temperature: float = 0.3
    summarization_temperature: float = 0.5

    # Request limits
    max_output_tokens: int = 8192
    request_timeout_s: float = 90.0
    max_retries: int = 4

    # Input shaping
    chunk_size: int = 12_000
    max_input_chars: int = 360_000
    max_chunks: int = 30
    min_content_length: int = 20
    min_task_count: int = 1

    # Chunk scheduling
    chunk_delay_ms: int = 0
    extraction_concurrency: int = 1

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]
