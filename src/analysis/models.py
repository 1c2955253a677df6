"""Result types assembled by the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.extraction.models import Priority
from src.ingestion.models import DocumentType
from src.llm.client import TokenUsage


class PipelineStage(StrEnum):
    """States a document passes through, in order."""

    PREPROCESSING = "preprocessing"
    CHUNKING = "chunking"
    EXTRACTING = "extracting"
    DEDUPLICATING = "deduplicating"
    CATEGORIZING = "categorizing"
    SUMMARIZING = "summarizing"
    ASSEMBLED = "assembled"


@dataclass(frozen=True)
class Task:
    """A validated task with a stable id.

    Content is fixed once created; ``group_id`` is filled in when the task is
    placed into its group.
    """

    id: str
    content: str
    priority: Priority
    estimated_time_minutes: int
    deadline: str | None
    created_at: str
    updated_at: str
    completed: bool = False
    group_id: str = ""
    source_chunk: int | None = None


@dataclass
class TaskGroup:
    """A named category of tasks."""

    id: str
    name: str
    tasks: list[Task] = field(default_factory=list)
    expanded: bool = True


@dataclass
class Summary:
    """Short project description plus milestones and resources."""

    project_description: str
    milestones: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """The pipeline's sole output.

    ``total_tasks`` always equals the number of tasks across ``groups``.
    """

    analysis_id: str
    groups: list[TaskGroup]
    summary: Summary
    document_type: DocumentType = DocumentType.GENERAL
    truncated: bool = False
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def total_tasks(self) -> int:
        return sum(len(group.tasks) for group in self.groups)

    @property
    def tasks(self) -> list[Task]:
        return [task for group in self.groups for task in group.tasks]

    @property
    def estimated_minutes(self) -> int:
        return sum(task.estimated_time_minutes for task in self.tasks)

    @property
    def estimated_time(self) -> str:
        return format_estimated_time(self.estimated_minutes)


def format_estimated_time(total_minutes: int) -> str:
    """Human-readable effort: ``"45 minutes"``, ``"2h 30m"``, ``"3 hours"``."""
    if total_minutes < 60:
        return f"{total_minutes} minutes"
    hours, minutes = divmod(total_minutes, 60)
    if minutes:
        return f"{hours}h {minutes}m"
    return f"{hours} hours"


# ---------------------------------------------------------------------------
# Expected model replies for the categorization and summarization calls
# ---------------------------------------------------------------------------


class CategoryAssignment(BaseModel):
    """One category proposed by the model."""

    model_config = ConfigDict(populate_by_name=True)

    category_id: str | None = Field(default=None, alias="categoryId")
    category_name: str = Field(min_length=1, alias="categoryName")
    task_ids: list[str] = Field(alias="taskIds")

    @field_validator("task_ids", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) if isinstance(item, int) else item for item in value]
        return value


class CategorizationPayload(BaseModel):
    """``{"categories": [...]}``"""

    categories: list[CategoryAssignment] = Field(min_length=1)


class SummaryPayload(BaseModel):
    """``{"projectDescription": ..., "milestones": [...], "resources": [...]}``"""

    model_config = ConfigDict(populate_by_name=True)

    project_description: str = Field(min_length=1, alias="projectDescription")
    milestones: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
