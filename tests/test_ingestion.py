"""Tests for preprocessing and chunking (no external API keys required)."""

import re

import pytest

from src.ingestion.chunking import chunk_text, find_cut
from src.ingestion.models import DocumentType
from src.ingestion.preprocessing import (
    detect_document_type,
    normalize_text,
    preprocess,
    strip_boilerplate,
)

SAMPLE_MINUTES = """\
Meeting Minutes - Product Sync
Attendees: Alice, Bob, Carol
Agenda: release planning

Action items:
- Alice to finalize the release notes by Friday.
- Bob to schedule a meeting with the vendor.
"""

SAMPLE_EMAIL = """\
From: ann@example.com
To: team@example.com
Subject: Budget

Hi team,
Please send the budget by Friday.

Best regards,
Ann
"""


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------


class TestNormalizeText:
    def test_line_endings(self) -> None:
        assert normalize_text("a\r\nb\rc") == "a\nb\nc"

    def test_control_and_zero_width_removed(self) -> None:
        assert normalize_text("ta\u200bsk\x00 one\ufeff") == "task one"

    def test_inline_whitespace_collapsed(self) -> None:
        assert normalize_text("a \u00a0\t b  c") == "a b c"

    def test_blank_lines_collapsed(self) -> None:
        assert normalize_text("one\n\n\n\n\ntwo") == "one\n\ntwo"

    def test_lines_trimmed_and_outer_whitespace_stripped(self) -> None:
        assert normalize_text("  \n  first  \n second \n\n") == "first\nsecond"

    def test_empty(self) -> None:
        assert normalize_text("") == ""


class TestDetectDocumentType:
    def test_meeting_minutes(self) -> None:
        assert detect_document_type(SAMPLE_MINUTES) is DocumentType.MEETING_MINUTES

    def test_email(self) -> None:
        assert detect_document_type(SAMPLE_EMAIL) is DocumentType.EMAIL

    def test_weak_signal_is_general(self) -> None:
        """A single keyword hit is not enough to classify."""
        assert detect_document_type("Please review the invoice.") is DocumentType.GENERAL

    def test_no_signal_is_general(self) -> None:
        assert detect_document_type("Buy milk tomorrow.") is DocumentType.GENERAL

    def test_empty_is_general(self) -> None:
        assert detect_document_type("") is DocumentType.GENERAL


class TestStripBoilerplate:
    def test_page_numbers_removed_for_any_type(self) -> None:
        text = "Intro paragraph.\nPage 3 of 10\nMore text.\n- 4 -"
        assert strip_boilerplate(text, DocumentType.GENERAL) == "Intro paragraph.\nMore text."

    def test_invoice_totals_removed(self) -> None:
        text = "Invoice\nBill to: ACME\nSubtotal: 100\nTotal: 120\nPlease pay within 30 days."
        cleaned = strip_boilerplate(text, DocumentType.INVOICE)
        assert "Subtotal" not in cleaned
        assert "Total: 120" not in cleaned
        assert "Please pay within 30 days." in cleaned

    def test_type_patterns_not_applied_to_other_types(self) -> None:
        text = "Subject: keep me\nBody."
        assert strip_boilerplate(text, DocumentType.GENERAL) == text


class TestPreprocess:
    def test_email_headers_stripped(self) -> None:
        result = preprocess(SAMPLE_EMAIL)
        assert result.document_type is DocumentType.EMAIL
        assert "Please send the budget by Friday." in result.text
        assert "From:" not in result.text
        assert "Subject:" not in result.text

    def test_empty_input(self) -> None:
        result = preprocess("  \x00\u200b \n\n ")
        assert result.text == ""
        assert result.document_type is DocumentType.GENERAL

    def test_boilerplate_only_input_is_general(self) -> None:
        """Headers alone leave no content, so no document type is reported."""
        result = preprocess("From: a@x.com\nTo: b@y.com\nSubject: hi\n")
        assert result.text == ""
        assert result.document_type is DocumentType.GENERAL

    def test_general_text_unchanged_apart_from_whitespace(self) -> None:
        result = preprocess("Please review the budget   by Friday.\r\n")
        assert result.text == "Please review the budget by Friday."
        assert result.document_type is DocumentType.GENERAL


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


class TestFindCut:
    def test_prefers_paragraph_break(self) -> None:
        text = "a" * 20 + "\n" + "b" * 20 + "\n\n" + "c" * 50
        assert find_cut(text, 0, 60) == 41

    def test_sentence_boundary_keeps_period(self) -> None:
        text = "First sentence here. Second sentence follows."
        assert find_cut(text, 0, 30) == 20

    def test_hard_cut_without_boundary(self) -> None:
        assert find_cut("x" * 250, 0, 100) == 100

    def test_end_of_text(self) -> None:
        assert find_cut("short", 0, 100) == 5


class TestChunkText:
    def test_short_text_single_chunk(self) -> None:
        chunks = chunk_text("Just one task.", max_chunk_size=100)
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].text == "Just one task."
        assert (chunks[0].start, chunks[0].end) == (0, 14)

    def test_blank_text(self) -> None:
        assert chunk_text("   \n\n ") == []

    def test_splits_on_paragraphs(self) -> None:
        text = "a" * 50 + "\n\n" + "b" * 50
        chunks = chunk_text(text, max_chunk_size=60)
        assert [c.text for c in chunks] == ["a" * 50, "b" * 50]

    def test_hard_cuts(self) -> None:
        chunks = chunk_text("x" * 250, max_chunk_size=100)
        assert [len(c.text) for c in chunks] == [100, 100, 50]

    def test_lossless_modulo_seam_whitespace(self) -> None:
        paragraphs = [
            " ".join(f"Sentence {p}.{s} talks about item {s}." for s in range(12))
            for p in range(15)
        ]
        text = "\n\n".join(paragraphs)
        chunks = chunk_text(text, max_chunk_size=300)

        assert len(chunks) > 1
        assert _squash("".join(c.text for c in chunks)) == _squash(text)
        for i, chunk in enumerate(chunks):
            assert chunk.index == i
            assert 0 < len(chunk.text) <= 300
            assert text[chunk.start : chunk.end] == chunk.text

    def test_chunk_cap_truncates(self) -> None:
        text = "x" * 1000
        chunks = chunk_text(text, max_chunk_size=100, max_chunks=3)
        assert len(chunks) == 3
        assert chunks[-1].end == 300
        assert chunks[-1].end < len(text)

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            chunk_text("text", max_chunk_size=0)
