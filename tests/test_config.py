"""Tests for Settings, PipelineConfig, and the enums they rely on."""

from __future__ import annotations

import dataclasses

import pytest

from src.config import Settings
from src.extraction.models import Priority
from src.ingestion.models import DocumentType
from src.pipeline_config import PipelineConfig

# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestDocumentType:
    def test_values(self) -> None:
        assert DocumentType.MEETING_MINUTES.value == "meeting-minutes"
        assert DocumentType.GENERAL.value == "general"

    def test_from_string(self) -> None:
        assert DocumentType("invoice") is DocumentType.INVOICE

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            DocumentType("spreadsheet")

    def test_is_str_subclass(self) -> None:
        """Enum values behave as plain strings for JSON serialization."""
        assert isinstance(DocumentType.EMAIL, str)


class TestPriority:
    def test_values(self) -> None:
        assert [p.value for p in Priority] == ["critical", "high", "medium", "low", "none"]

    def test_is_str_subclass(self) -> None:
        assert isinstance(Priority.HIGH, str)


# ---------------------------------------------------------------------------
# Settings / PipelineConfig tests
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.max_output_tokens == 8192
        assert s.request_timeout_s == 90.0
        assert s.max_retries == 4
        assert s.chunk_size == 12_000
        assert s.max_input_chars == 360_000
        assert s.max_chunks == 30

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_MODEL", "my-model")
        monkeypatch.setenv("MAX_RETRIES", "7")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.llm_model == "my-model"
        assert s.max_retries == 7


class TestPipelineConfig:
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        assert cfg.max_output_tokens == 8192
        assert cfg.request_timeout_s == 90.0
        assert cfg.max_retries == 4
        assert cfg.chunk_size == 12_000
        assert cfg.max_chunks == 30
        assert cfg.base_delay_ms == 1000
        assert cfg.max_delay_ms == 30_000
        assert cfg.chunk_delay_ms == 0
        assert cfg.extraction_concurrency == 1

    def test_from_settings(self) -> None:
        s = Settings(
            _env_file=None,  # type: ignore[call-arg]
            llm_api_key="k",
            llm_model="m",
            extraction_temperature=0.1,
            summarization_temperature=0.9,
            chunk_size=500,
        )
        cfg = PipelineConfig.from_settings(s)
        assert cfg.api_key == "k"
        assert cfg.model == "m"
        assert cfg.extraction_temperature == 0.1
        assert cfg.summarization_temperature == 0.9
        assert cfg.chunk_size == 500

    def test_immutable(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.model = "other"  # type: ignore[misc]

    def test_replace_keeps_other_fields(self) -> None:
        cfg = dataclasses.replace(PipelineConfig(model="a"), chunk_size=100)
        assert cfg.model == "a"
        assert cfg.chunk_size == 100

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_retries": 0},
            {"chunk_size": 0},
            {"max_chunks": -1},
            {"extraction_concurrency": 0},
            {"chunk_delay_ms": -5},
            {"min_task_count": 0},
        ],
    )
    def test_rejects_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValueError):
            PipelineConfig(**overrides)
