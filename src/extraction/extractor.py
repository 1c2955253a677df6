"""LLM-powered extraction of task candidates from one content chunk."""

from __future__ import annotations

import asyncio
import logging

from src.extraction.models import ExtractionPayload, TaskCandidate
from src.ingestion.models import ContentChunk, DocumentType
from src.llm.client import LLMRequest, ResilientLLMClient, UsageMeter
from src.llm.errors import LLMError, UnparsableOutputError
from src.llm.json_salvage import parse_model_output

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a task extraction assistant. Read the document text provided "
    "and extract every actionable task it contains.\n\n"
    "For each task return:\n"
    '- "content": a clear, self-contained description of what must be done.\n'
    '- "priority": one of "critical", "high", "medium", "low", "none".\n'
    '- "estimatedTimeMinutes": a whole-number estimate of the effort.\n'
    '- "deadline": the deadline as written in the text, or null.\n\n'
    "{hint}\n\n"
    "Respond with exactly one JSON object of the form "
    '{{"tasks": [{{"content": "...", "priority": "...", '
    '"estimatedTimeMinutes": 30, "deadline": null}}]}}. '
    "Do not include explanations, prose, or markdown code fences. "
    'If the text contains no tasks, return {{"tasks": []}}.'
)

DOCUMENT_HINTS: dict[DocumentType, str] = {
    DocumentType.MEETING_MINUTES: (
        "This is a set of meeting minutes. Extract explicit action items and "
        "follow-ups, including who owns them and when they are due."
    ),
    DocumentType.PROJECT_PLAN: (
        "This is a project plan. Extract deliverables and the work needed to "
        "reach each milestone, keeping the plan's ordering."
    ),
    DocumentType.CONTRACT: (
        "This is a contract. Extract obligations, renewal and termination "
        "steps, and any date-bound duties of either party."
    ),
    DocumentType.EMAIL: (
        "This is an email. Extract requests made of the reader and any "
        "commitments or replies that are expected."
    ),
    DocumentType.INVOICE: (
        "This is an invoice. Extract payment, verification and filing tasks, "
        "using the due date as the deadline."
    ),
    DocumentType.RESUME: (
        "This is a resume. Extract review, screening and follow-up tasks a "
        "hiring team would need to perform."
    ),
    DocumentType.RESEARCH_PAPER: (
        "This is a research paper. Extract follow-up work: experiments to "
        "reproduce, open questions, and references to read."
    ),
    DocumentType.MANUAL: (
        "This is a manual. Extract the procedure steps as tasks, in order, "
        "and include any safety checks."
    ),
    DocumentType.GENERAL: (
        "Extract explicit to-dos as well as clearly implied actions."
    ),
}


def build_system_prompt(document_type: DocumentType) -> str:
    """System prompt with the hint for ``document_type``."""
    hint = DOCUMENT_HINTS.get(document_type, DOCUMENT_HINTS[DocumentType.GENERAL])
    return SYSTEM_PROMPT.format(hint=hint)


def build_user_prompt(chunk: ContentChunk, *, is_first_chunk: bool, total_chunks: int) -> str:
    """User prompt for one chunk; later chunks are framed as continuations."""
    if total_chunks <= 1:
        intro = "Extract the tasks from this document:"
    elif is_first_chunk:
        intro = (
            f"This is part 1 of {total_chunks} of a longer document. "
            "Extract the tasks from this part:"
        )
    else:
        intro = (
            f"This is part {chunk.index + 1} of {total_chunks}, continuing the same "
            "document. Extract only the tasks that appear in this part:"
        )
    return f"{intro}\n\n{chunk.text}"


def parse_extraction(raw: str, chunk_index: int | None = None) -> list[TaskCandidate]:
    """Parse a model reply into candidates tagged with their chunk index.

    Raises:
        UnparsableOutputError: The reply is not a valid ``{"tasks": [...]}``.
    """
    payload = parse_model_output(raw, ExtractionPayload)
    return [task.model_copy(update={"source_chunk": chunk_index}) for task in payload.tasks]


async def extract_tasks(
    client: ResilientLLMClient,
    chunk: ContentChunk,
    document_type: DocumentType,
    *,
    is_first_chunk: bool,
    total_chunks: int = 1,
    temperature: float = 0.2,
    cancel_event: asyncio.Event | None = None,
    usage: UsageMeter | None = None,
) -> list[TaskCandidate]:
    """Extract task candidates from a single chunk.

    A failed call or an unparsable reply degrades to an empty list so the
    remaining chunks are still processed.

    Args:
        client: LLM client used for the exchange.
        chunk: The chunk to analyze.
        document_type: Detected type, used to pick the prompt hint.
        is_first_chunk: Whether this is the document's first chunk.
        total_chunks: Number of chunks in the document.
        temperature: Sampling temperature for extraction.
        cancel_event: Optional cancellation signal.
        usage: Optional meter that receives the call's token usage.

    Returns:
        Candidates in the order the model listed them (possibly empty).
    """
    request = LLMRequest(
        system_prompt=build_system_prompt(document_type),
        user_prompt=build_user_prompt(
            chunk, is_first_chunk=is_first_chunk, total_chunks=total_chunks
        ),
        temperature=temperature,
    )

    try:
        response = await client.complete(request, cancel_event=cancel_event)
    except LLMError as exc:
        logger.warning("Extraction failed for chunk %d: %s", chunk.index, exc)
        return []

    if usage is not None:
        usage.record(response.usage)

    try:
        candidates = parse_extraction(response.content, chunk.index)
    except UnparsableOutputError as exc:
        logger.warning("Discarding unparsable extraction for chunk %d: %s", chunk.index, exc)
        return []

    logger.info("Extracted %d candidate(s) from chunk %d", len(candidates), chunk.index)
    return candidates
