"""Text normalization, document-type detection, and boilerplate removal."""

from __future__ import annotations

import re

from src.ingestion.models import DocumentType, PreprocessedText

# C0/C1 control characters except tab, newline and carriage return, plus
# zero-width characters and the BOM that OCR output tends to carry.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\u200b-\u200d\u2060\ufeff]")
_INLINE_WS_RE = re.compile(r"[ \t\f\v\u00a0]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

# A type must collect at least this many keyword hits to beat "general".
MIN_TYPE_SCORE = 2

_TYPE_KEYWORDS: dict[DocumentType, list[re.Pattern[str]]] = {
    DocumentType.MEETING_MINUTES: [
        re.compile(r"\bminutes\b", re.IGNORECASE),
        re.compile(r"\bagenda\b", re.IGNORECASE),
        re.compile(r"\battendees?\b", re.IGNORECASE),
        re.compile(r"\baction items?\b", re.IGNORECASE),
        re.compile(r"\bmeeting\b", re.IGNORECASE),
        re.compile(r"\bchair(?:ed|person)?\b", re.IGNORECASE),
        re.compile(r"\bnext steps\b", re.IGNORECASE),
    ],
    DocumentType.PROJECT_PLAN: [
        re.compile(r"\bmilestones?\b", re.IGNORECASE),
        re.compile(r"\bdeliverables?\b", re.IGNORECASE),
        re.compile(r"\btimeline\b", re.IGNORECASE),
        re.compile(r"\bphase \d+\b", re.IGNORECASE),
        re.compile(r"\bscope\b", re.IGNORECASE),
        re.compile(r"\bstakeholders?\b", re.IGNORECASE),
        re.compile(r"\bsprint\b", re.IGNORECASE),
    ],
    DocumentType.CONTRACT: [
        re.compile(r"\bagreement\b", re.IGNORECASE),
        re.compile(r"\bparty\b|\bparties\b", re.IGNORECASE),
        re.compile(r"\bhereby\b", re.IGNORECASE),
        re.compile(r"\bwhereas\b", re.IGNORECASE),
        re.compile(r"\bterminat(?:e|ion)\b", re.IGNORECASE),
        re.compile(r"\bindemnif(?:y|ication)\b", re.IGNORECASE),
        re.compile(r"\bgoverning law\b", re.IGNORECASE),
    ],
    DocumentType.EMAIL: [
        re.compile(r"^from:", re.IGNORECASE | re.MULTILINE),
        re.compile(r"^to:", re.IGNORECASE | re.MULTILINE),
        re.compile(r"^subject:", re.IGNORECASE | re.MULTILINE),
        re.compile(r"^(?:cc|sent):", re.IGNORECASE | re.MULTILINE),
        re.compile(r"\b(?:best regards|kind regards|regards),?\s*$", re.IGNORECASE | re.MULTILINE),
        re.compile(r"^(?:hi|hello|dear)\b", re.IGNORECASE | re.MULTILINE),
    ],
    DocumentType.INVOICE: [
        re.compile(r"\binvoice\b", re.IGNORECASE),
        re.compile(r"\bsubtotal\b", re.IGNORECASE),
        re.compile(r"\bamount due\b|\bbalance due\b", re.IGNORECASE),
        re.compile(r"\bbill to\b", re.IGNORECASE),
        re.compile(r"\bpayment terms\b", re.IGNORECASE),
        re.compile(r"\b(?:vat|tax)\b", re.IGNORECASE),
        re.compile(r"\bqty\b|\bquantity\b", re.IGNORECASE),
    ],
    DocumentType.RESUME: [
        re.compile(r"\bresume\b|\bcurriculum vitae\b", re.IGNORECASE),
        re.compile(r"\bwork experience\b|\bexperience\b", re.IGNORECASE),
        re.compile(r"\beducation\b", re.IGNORECASE),
        re.compile(r"\bskills\b", re.IGNORECASE),
        re.compile(r"\breferences available\b", re.IGNORECASE),
        re.compile(r"\bcertifications?\b", re.IGNORECASE),
    ],
    DocumentType.RESEARCH_PAPER: [
        re.compile(r"\babstract\b", re.IGNORECASE),
        re.compile(r"\bintroduction\b", re.IGNORECASE),
        re.compile(r"\bmethodology\b|\bmethods\b", re.IGNORECASE),
        re.compile(r"\bconclusions?\b", re.IGNORECASE),
        re.compile(r"\breferences\b|\bbibliography\b", re.IGNORECASE),
        re.compile(r"\bet al\.", re.IGNORECASE),
        re.compile(r"\bhypothes(?:is|es)\b", re.IGNORECASE),
    ],
    DocumentType.MANUAL: [
        re.compile(r"\bstep \d+\b", re.IGNORECASE),
        re.compile(r"\binstructions?\b", re.IGNORECASE),
        re.compile(r"\btroubleshooting\b", re.IGNORECASE),
        re.compile(r"\bwarning\b|\bcaution\b", re.IGNORECASE),
        re.compile(r"\binstall(?:ation)?\b", re.IGNORECASE),
        re.compile(r"\buser (?:guide|manual)\b", re.IGNORECASE),
    ],
}

# Lines removed everywhere: page furniture left behind by extraction.
_COMMON_BOILERPLATE: list[re.Pattern[str]] = [
    re.compile(r"^\s*page \d+(?: of \d+)?\s*$", re.IGNORECASE),
    re.compile(r"^\s*-\s*\d+\s*-\s*$"),
]

_TYPE_BOILERPLATE: dict[DocumentType, list[re.Pattern[str]]] = {
    DocumentType.EMAIL: [
        re.compile(r"^\s*(?:from|to|cc|bcc|sent|date|reply-to|subject):.*$", re.IGNORECASE),
        re.compile(r"^\s*-+\s*original message\s*-+\s*$", re.IGNORECASE),
        re.compile(r"^\s*sent from my \w+.*$", re.IGNORECASE),
        re.compile(r"^.*\bunsubscribe\b.*$", re.IGNORECASE),
    ],
    DocumentType.INVOICE: [
        re.compile(
            r"^\s*(?:sub\s?total|total|tax|vat|amount due|balance due|grand total)\b.*$",
            re.IGNORECASE,
        ),
        re.compile(r"^\s*invoice (?:no\.?|number|#)\s*[:#]?.*$", re.IGNORECASE),
    ],
    DocumentType.RESEARCH_PAPER: [
        re.compile(r"^\s*doi:\s*\S+\s*$", re.IGNORECASE),
        re.compile(r"^\s*arxiv:\s*\S+.*$", re.IGNORECASE),
    ],
    DocumentType.CONTRACT: [
        re.compile(r"^\s*initials?:?\s*_*\s*$", re.IGNORECASE),
    ],
}


def normalize_text(raw: str) -> str:
    """Strip control characters and normalize line endings and whitespace.

    Runs of spaces/tabs collapse to one space, lines are trimmed, and more
    than one consecutive blank line collapses to a single blank line.
    """
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_RE.sub("", text)
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def score_document_types(text: str) -> dict[DocumentType, int]:
    """Count keyword hits per document type."""
    return {
        doc_type: sum(len(p.findall(text)) for p in patterns)
        for doc_type, patterns in _TYPE_KEYWORDS.items()
    }


def detect_document_type(text: str) -> DocumentType:
    """Pick the best-scoring document type, or ``GENERAL`` on a weak match.

    Ties go to the type listed first in :class:`DocumentType`.
    """
    if not text:
        return DocumentType.GENERAL
    scores = score_document_types(text)
    best_type, best_score = DocumentType.GENERAL, 0
    for doc_type, score in scores.items():
        if score > best_score:
            best_type, best_score = doc_type, score
    if best_score < MIN_TYPE_SCORE:
        return DocumentType.GENERAL
    return best_type


def strip_boilerplate(text: str, document_type: DocumentType) -> str:
    """Drop lines matching the common and type-specific boilerplate patterns."""
    patterns = _COMMON_BOILERPLATE + _TYPE_BOILERPLATE.get(document_type, [])
    kept = [line for line in text.split("\n") if not any(p.match(line) for p in patterns)]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(kept)).strip()


def preprocess(raw: str) -> PreprocessedText:
    """Normalize raw extracted text and classify it.

    Never raises for content reasons: empty or degenerate input yields an
    empty string typed ``GENERAL``.

    Args:
        raw: Text handed over by the extraction layer.

    Returns:
        A :class:`PreprocessedText` with the cleaned text and detected type.
    """
    text = normalize_text(raw)
    if not text:
        return PreprocessedText(text="", document_type=DocumentType.GENERAL)

    document_type = detect_document_type(text)
    cleaned = strip_boilerplate(text, document_type)
    if not cleaned:
        # Nothing but boilerplate: the type describes no content.
        return PreprocessedText(text="", document_type=DocumentType.GENERAL)
    return PreprocessedText(text=cleaned, document_type=document_type)
