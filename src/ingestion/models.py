"""Data models for the ingestion stage: document type, normalized text, chunks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DocumentType(StrEnum):
    """Coarse document classification, used only to bias prompt wording."""

    MEETING_MINUTES = "meeting-minutes"
    PROJECT_PLAN = "project-plan"
    CONTRACT = "contract"
    EMAIL = "email"
    INVOICE = "invoice"
    RESUME = "resume"
    RESEARCH_PAPER = "research-paper"
    MANUAL = "manual"
    GENERAL = "general"


@dataclass(frozen=True)
class PreprocessedText:
    """Normalized text and the document type detected for it."""

    text: str
    document_type: DocumentType = DocumentType.GENERAL


@dataclass(frozen=True)
class ContentChunk:
    """An ordered slice of the normalized text.

    ``start``/``end`` are offsets into the normalized text, so a chunk's
    origin can be traced after extraction.
    """

    index: int
    text: str
    start: int
    end: int
