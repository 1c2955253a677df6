"""Substitute tasks and summaries used when extraction yields nothing usable."""

from __future__ import annotations

import re

from src.analysis.models import Summary
from src.extraction.models import Priority, TaskCandidate

NO_CONTENT_TASK = "No readable content was found in the document. Check the source file and try again."
NO_CONTENT_DESCRIPTION = (
    "No readable content could be extracted from the document, so no tasks were identified."
)

CANNED_TASK = "Review the document manually: no actionable tasks were identified automatically."

MAX_FALLBACK_TASKS = 5
MIN_SENTENCE_LENGTH = 10
TITLE_LENGTH = 60

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def position_priority(index: int) -> Priority:
    """Earlier sentences rank higher: first high, next two medium, rest low."""
    if index == 0:
        return Priority.HIGH
    return Priority.MEDIUM if index < 3 else Priority.LOW


def build_fallback_candidates(text: str) -> list[TaskCandidate]:
    """Derive review tasks from the document's first sentences.

    Up to :data:`MAX_FALLBACK_TASKS` sentences longer than
    :data:`MIN_SENTENCE_LENGTH` characters become ``"Review: ..."`` tasks.
    When no sentence qualifies the single canned task is returned, so the
    result is never empty.
    """
    sentences = [
        " ".join(s.split())
        for s in _SENTENCE_SPLIT_RE.split(text)
        if len(s.strip()) > MIN_SENTENCE_LENGTH
    ]
    candidates = []
    for index, sentence in enumerate(sentences[:MAX_FALLBACK_TASKS]):
        title = sentence[:TITLE_LENGTH]
        if len(sentence) > TITLE_LENGTH:
            title = title.rstrip() + "..."
        candidates.append(
            TaskCandidate(content=f"Review: {title}", priority=position_priority(index))
        )
    if not candidates:
        candidates.append(TaskCandidate(content=CANNED_TASK, priority=Priority.MEDIUM))
    return candidates


def no_content_candidate() -> TaskCandidate:
    return TaskCandidate(content=NO_CONTENT_TASK, priority=Priority.NONE, estimated_time_minutes=0)


def no_content_summary() -> Summary:
    return Summary(project_description=NO_CONTENT_DESCRIPTION)


def failure_candidate(reason: str) -> TaskCandidate:
    return TaskCandidate(
        content=f"Document analysis failed: {reason}. Please try again.",
        priority=Priority.HIGH,
        estimated_time_minutes=0,
    )


def failure_summary(reason: str) -> Summary:
    return Summary(project_description=f"The document could not be analyzed: {reason}.")
