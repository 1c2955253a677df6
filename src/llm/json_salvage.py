"""Recover a JSON object from free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from src.llm.errors import UnparsableOutputError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Chatty lead-ins models put before the JSON despite instructions
_PREFIX_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^\s*(sure|certainly|of course|okay|ok)[!,.]?\s*", re.IGNORECASE),
    re.compile(r"^\s*here(?:'s| is| are)\s+(?:the\s+)?[^:{\n]*:\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:json|response|output|result)\s*:\s*", re.IGNORECASE),
]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")


def _strip_prefixes(text: str) -> str:
    changed = True
    while changed:
        changed = False
        for pattern in _PREFIX_PATTERNS:
            stripped = pattern.sub("", text, count=1)
            if stripped != text:
                text = stripped
                changed = True
    return text


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse the JSON object embedded in a model reply.

    Strips known lead-in phrases and markdown code fences, then keeps the
    span from the first ``{`` to the last ``}`` before decoding.

    Args:
        raw: The model's reply text.

    Returns:
        The decoded JSON object.

    Raises:
        UnparsableOutputError: No object could be decoded, or the decoded
            value is not a JSON object.
    """
    text = (raw or "").strip()
    if not text:
        raise UnparsableOutputError("empty model output")

    text = _strip_prefixes(text)

    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise UnparsableOutputError("no JSON object found in model output")

    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise UnparsableOutputError(f"invalid JSON in model output: {exc}") from exc

    if not isinstance(value, dict):
        raise UnparsableOutputError("model output is not a JSON object")
    return value


def parse_model_output(raw: str, schema: type[ModelT]) -> ModelT:
    """Extract a JSON object from ``raw`` and validate it against ``schema``.

    Raises:
        UnparsableOutputError: Extraction or validation failed. Partial
            results are never returned.
    """
    data = extract_json_object(raw)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise UnparsableOutputError(
            f"model output does not match {schema.__name__}: {exc.error_count()} error(s)"
        ) from exc
