"""Exact-after-normalization deduplication of task candidates."""

from __future__ import annotations

import re

from src.extraction.models import TaskCandidate

_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_key(content: str) -> str:
    """Lower-case, drop punctuation (underscores included), and collapse whitespace."""
    text = _PUNCTUATION_RE.sub("", content.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def deduplicate_candidates(candidates: list[TaskCandidate]) -> list[TaskCandidate]:
    """Keep the first occurrence of each normalized content key.

    Order is preserved.  Candidates whose content normalizes to nothing
    (pure punctuation) are dropped.
    """
    seen: set[str] = set()
    unique: list[TaskCandidate] = []
    for candidate in candidates:
        key = normalize_key(candidate.content)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique
