"""Pydantic request/response schemas for the Document Analysis API.

Responses are serialized with camelCase keys (``analysisId``,
``totalTasks``, ...), the shape downstream persistence and display expect.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.analysis.models import AnalysisResult
from src.extraction.models import Priority
from src.ingestion.models import DocumentType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(_CamelModel):
    """Request body for the /api/analyze endpoint."""

    text: str
    file_name: str | None = None


class TaskResponse(_CamelModel):
    """A single task in API responses."""

    id: str
    content: str
    priority: Priority
    estimated_time_minutes: int
    deadline: str | None = None
    completed: bool = False
    group_id: str
    created_at: str
    updated_at: str
    source_chunk: int | None = None


class TaskGroupResponse(_CamelModel):
    """A named group of tasks."""

    id: str
    name: str
    expanded: bool = True
    tasks: list[TaskResponse] = []


class SummaryResponse(_CamelModel):
    project_description: str
    milestones: list[str] = []
    resources: list[str] = []


class UsageResponse(_CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AnalysisResponse(_CamelModel):
    """Response body for the /api/analyze endpoint."""

    analysis_id: str
    total_tasks: int
    groups: list[TaskGroupResponse]
    summary: SummaryResponse
    document_type: DocumentType
    estimated_time: str
    truncated: bool = False
    usage: UsageResponse
    file_name: str | None = None

    @classmethod
    def from_result(cls, result: AnalysisResult, file_name: str | None = None) -> AnalysisResponse:
        return cls(
            analysis_id=result.analysis_id,
            total_tasks=result.total_tasks,
            groups=[
                TaskGroupResponse(
                    id=group.id,
                    name=group.name,
                    expanded=group.expanded,
                    tasks=[
                        TaskResponse(
                            id=t.id,
                            content=t.content,
                            priority=t.priority,
                            estimated_time_minutes=t.estimated_time_minutes,
                            deadline=t.deadline,
                            completed=t.completed,
                            group_id=t.group_id,
                            created_at=t.created_at,
                            updated_at=t.updated_at,
                            source_chunk=t.source_chunk,
                        )
                        for t in group.tasks
                    ],
                )
                for group in result.groups
            ],
            summary=SummaryResponse(
                project_description=result.summary.project_description,
                milestones=result.summary.milestones,
                resources=result.summary.resources,
            ),
            document_type=result.document_type,
            estimated_time=result.estimated_time,
            truncated=result.truncated,
            usage=UsageResponse(
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            ),
            file_name=file_name,
        )
