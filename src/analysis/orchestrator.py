"""End-to-end document analysis: preprocess -> chunk -> extract -> dedupe -> categorize -> summarize.

The orchestrator owns the fallback policy.  Stages degrade locally (empty
candidate lists, a single group, a neutral summary); anything that still
escapes is caught by one top-level guard and turned into a one-task result
explaining the failure.  Only cancellation reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from src.analysis.categorization import categorize_tasks, single_group
from src.analysis.fallbacks import (
    build_fallback_candidates,
    failure_candidate,
    failure_summary,
    no_content_candidate,
    no_content_summary,
)
from src.analysis.models import AnalysisResult, PipelineStage, Summary, Task, TaskGroup
from src.analysis.summarization import summarize_tasks
from src.extraction.dedup import deduplicate_candidates
from src.extraction.extractor import extract_tasks
from src.extraction.models import TaskCandidate
from src.ingestion.chunking import chunk_text
from src.ingestion.models import ContentChunk, DocumentType
from src.ingestion.preprocessing import preprocess
from src.llm.client import ResilientLLMClient, UsageMeter, run_cancellable
from src.llm.errors import AnalysisCancelledError, InputTooShortError
from src.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PipelineStage, str], None]


def candidates_to_tasks(candidates: list[TaskCandidate]) -> list[Task]:
    """Assign stable ids (``task-1``, ``task-2``, ...) and timestamps."""
    now = datetime.now(timezone.utc).isoformat()
    return [
        Task(
            id=f"task-{number}",
            content=candidate.content,
            priority=candidate.priority,
            estimated_time_minutes=candidate.estimated_time_minutes,
            deadline=candidate.deadline,
            created_at=now,
            updated_at=now,
            source_chunk=candidate.source_chunk,
        )
        for number, candidate in enumerate(candidates, start=1)
    ]


class _Run:
    """Per-invocation state: current stage, token usage, progress reporting."""

    def __init__(self, on_progress: ProgressCallback | None) -> None:
        self.analysis_id = str(uuid.uuid4())
        self.stage = PipelineStage.PREPROCESSING
        self.usage = UsageMeter()
        self.document_type = DocumentType.GENERAL
        self.truncated = False
        self._on_progress = on_progress

    def enter(self, stage: PipelineStage, detail: str = "") -> None:
        self.stage = stage
        logger.info("Analysis %s: %s %s", self.analysis_id, stage.value, detail)
        if self._on_progress is not None:
            self._on_progress(stage, detail)

    def result(self, groups: list[TaskGroup], summary: Summary) -> AnalysisResult:
        return AnalysisResult(
            analysis_id=self.analysis_id,
            groups=groups,
            summary=summary,
            document_type=self.document_type,
            truncated=self.truncated,
            usage=self.usage.total,
        )


class DocumentAnalyzer:
    """Runs the analysis pipeline for one document per :meth:`analyze` call.

    Holds only configuration and the LLM client, so a single analyzer can
    serve many documents concurrently.

    Usage::

        analyzer = DocumentAnalyzer(PipelineConfig.from_settings(get_settings()))
        result = await analyzer.analyze(text)
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: ResilientLLMClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.client = client or ResilientLLMClient(config)
        self._sleep = sleep

    async def analyze(
        self,
        raw_text: str,
        *,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """Analyze ``raw_text`` into categorized tasks and a summary.

        Always returns a well-formed result, including for empty or
        unreadable input and for unexpected internal failures.

        Args:
            raw_text: Text produced by the extraction layer.
            cancel_event: Set it to abandon the run; checked before every
                stage and every LLM attempt.
            on_progress: Called with each stage as it starts.

        Raises:
            AnalysisCancelledError: ``cancel_event`` was set.
        """
        run = _Run(on_progress)
        try:
            return await self._run(raw_text or "", run, cancel_event)
        except (AnalysisCancelledError, asyncio.CancelledError):
            logger.info("Analysis %s cancelled during %s", run.analysis_id, run.stage.value)
            raise
        except InputTooShortError as exc:
            logger.info("Analysis %s: %s", run.analysis_id, exc)
            return self._single_task_result(run, no_content_candidate(), no_content_summary())
        except Exception as exc:
            logger.exception("Analysis %s failed during %s", run.analysis_id, run.stage.value)
            reason = str(exc) or type(exc).__name__
            return self._single_task_result(run, failure_candidate(reason), failure_summary(reason))

    @staticmethod
    def _single_task_result(
        run: _Run, candidate: TaskCandidate, summary: Summary
    ) -> AnalysisResult:
        return run.result(single_group(candidates_to_tasks([candidate])), summary)

    @staticmethod
    def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("analysis cancelled")

    async def _run(
        self, raw_text: str, run: _Run, cancel_event: asyncio.Event | None
    ) -> AnalysisResult:
        config = self.config

        self._check_cancelled(cancel_event)
        run.enter(PipelineStage.PREPROCESSING)
        preprocessed = preprocess(raw_text)
        text = preprocessed.text
        run.document_type = preprocessed.document_type
        if len(text) < config.min_content_length:
            raise InputTooShortError(
                f"normalized text has {len(text)} characters, "
                f"need at least {config.min_content_length}"
            )
        if len(text) > config.max_input_chars:
            logger.warning(
                "Input of %d characters truncated to %d", len(text), config.max_input_chars
            )
            text = text[: config.max_input_chars]
            run.truncated = True

        self._check_cancelled(cancel_event)
        run.enter(PipelineStage.CHUNKING, f"{len(text)} characters")
        chunks = chunk_text(text, config.chunk_size, config.max_chunks)
        if chunks and chunks[-1].end < len(text.rstrip()):
            run.truncated = True

        candidates = await self._extract_all(chunks, run, cancel_event)

        self._check_cancelled(cancel_event)
        run.enter(PipelineStage.DEDUPLICATING, f"{len(candidates)} candidates")
        unique = deduplicate_candidates(candidates)
        if len(unique) < config.min_task_count:
            logger.warning(
                "Only %d task(s) extracted (minimum %d); adding fallback tasks",
                len(unique), config.min_task_count,
            )
            unique = deduplicate_candidates(unique + build_fallback_candidates(text))
        tasks = candidates_to_tasks(unique)

        self._check_cancelled(cancel_event)
        run.enter(PipelineStage.CATEGORIZING, f"{len(tasks)} tasks")
        groups = await categorize_tasks(
            self.client,
            tasks,
            temperature=config.categorization_temperature,
            cancel_event=cancel_event,
            usage=run.usage,
        )

        self._check_cancelled(cancel_event)
        run.enter(PipelineStage.SUMMARIZING)
        summary = await summarize_tasks(
            self.client,
            tasks,
            run.document_type,
            temperature=config.summarization_temperature,
            cancel_event=cancel_event,
            usage=run.usage,
        )

        result = run.result(groups, summary)
        run.enter(PipelineStage.ASSEMBLED, f"{result.total_tasks} tasks in {len(groups)} groups")
        logger.info(
            "Analysis %s used %d LLM call(s), %d tokens",
            run.analysis_id, run.usage.calls, run.usage.total.total_tokens,
        )
        return result

    async def _extract_all(
        self,
        chunks: list[ContentChunk],
        run: _Run,
        cancel_event: asyncio.Event | None,
    ) -> list[TaskCandidate]:
        """Extract every chunk and concatenate the results in chunk order."""
        total = len(chunks)
        delay_s = self.config.chunk_delay_ms / 1000
        semaphore = asyncio.Semaphore(self.config.extraction_concurrency)

        async def extract_one(chunk: ContentChunk) -> list[TaskCandidate]:
            async with semaphore:
                self._check_cancelled(cancel_event)
                if chunk.index > 0 and delay_s > 0:
                    await run_cancellable(self._sleep(delay_s), cancel_event)
                run.enter(PipelineStage.EXTRACTING, f"chunk {chunk.index + 1} of {total}")
                return await extract_tasks(
                    self.client,
                    chunk,
                    run.document_type,
                    is_first_chunk=chunk.index == 0,
                    total_chunks=total,
                    temperature=self.config.extraction_temperature,
                    cancel_event=cancel_event,
                    usage=run.usage,
                )

        if self.config.extraction_concurrency == 1:
            per_chunk = [await extract_one(chunk) for chunk in chunks]
        else:
            futures = [asyncio.ensure_future(extract_one(chunk)) for chunk in chunks]
            try:
                per_chunk = await asyncio.gather(*futures)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return [candidate for candidates in per_chunk for candidate in candidates]


def failure_result(reason: str) -> AnalysisResult:
    """One-task result explaining why analysis could not run."""
    tasks = candidates_to_tasks([failure_candidate(reason)])
    return _Run(None).result(single_group(tasks), failure_summary(reason))


async def analyze_document(
    raw_text: str,
    config: PipelineConfig,
    *,
    client: ResilientLLMClient | None = None,
    cancel_event: asyncio.Event | None = None,
    on_progress: ProgressCallback | None = None,
) -> AnalysisResult:
    """Analyze one document with a fresh :class:`DocumentAnalyzer`.

    A client created here is closed before returning; a client passed in
    is left open for the caller to reuse.
    """
    owns_client = client is None
    analyzer = DocumentAnalyzer(config, client)
    try:
        return await analyzer.analyze(
            raw_text, cancel_event=cancel_event, on_progress=on_progress
        )
    finally:
        if owns_client:
            await analyzer.client.aclose()
