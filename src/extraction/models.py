"""Data models for task extraction results."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ESTIMATED_MINUTES = 15

_LEADING_NUMBER_RE = re.compile(r"\d+")


class Priority(StrEnum):
    """Task priority, highest first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


# Words models use instead of the canonical priority names
_PRIORITY_ALIASES: dict[str, Priority] = {
    "urgent": Priority.CRITICAL,
    "blocker": Priority.CRITICAL,
    "highest": Priority.CRITICAL,
    "important": Priority.HIGH,
    "normal": Priority.MEDIUM,
    "moderate": Priority.MEDIUM,
    "minor": Priority.LOW,
    "lowest": Priority.LOW,
    "": Priority.NONE,
    "n/a": Priority.NONE,
}


class TaskCandidate(BaseModel):
    """An unvalidated task returned by one extraction call.

    Keys arrive camelCased from the model (``estimatedTimeMinutes``); the
    snake_case names are accepted too.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    estimated_time_minutes: int = Field(
        default=DEFAULT_ESTIMATED_MINUTES, ge=0, alias="estimatedTimeMinutes"
    )
    deadline: str | None = None
    # Index of the chunk this candidate came from; None for fallback tasks.
    source_chunk: int | None = Field(default=None, exclude=True)

    @field_validator("content", mode="before")
    @classmethod
    def _strip_content(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        if value is None:
            return Priority.NONE
        if isinstance(value, str):
            key = value.strip().lower()
            try:
                return Priority(key)
            except ValueError:
                return _PRIORITY_ALIASES.get(key, Priority.MEDIUM)
        return value

    @field_validator("estimated_time_minutes", mode="before")
    @classmethod
    def _coerce_minutes(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_ESTIMATED_MINUTES
        if isinstance(value, float):
            return max(0, round(value))
        if isinstance(value, str):
            match = _LEADING_NUMBER_RE.match(value.strip())
            return int(match.group(0)) if match else DEFAULT_ESTIMATED_MINUTES
        return value

    @field_validator("deadline", mode="before")
    @classmethod
    def _blank_deadline(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value or value.lower() in {"none", "null", "n/a"}:
                return None
        return value


class ExtractionPayload(BaseModel):
    """Expected model reply for one chunk: ``{"tasks": [...]}``."""

    tasks: list[TaskCandidate]
