"""Project summary (description, milestones, resources) from the final task list."""

from __future__ import annotations

import asyncio
import logging

from src.analysis.categorization import task_preview
from src.analysis.models import Summary, SummaryPayload, Task
from src.ingestion.models import DocumentType
from src.llm.client import LLMRequest, ResilientLLMClient, UsageMeter
from src.llm.errors import LLMError, UnparsableOutputError
from src.llm.json_salvage import parse_model_output

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Analysis completed. Review the extracted items."

SYSTEM_PROMPT = (
    "You write brief project overviews. Given a list of tasks extracted from "
    "a document, describe the project they belong to in two or three "
    "sentences, list its key milestones, and list the resources (people, "
    "tools, budgets, documents) it needs.\n\n"
    "Respond with exactly one JSON object of the form "
    '{"projectDescription": "...", "milestones": ["..."], "resources": ["..."]}. '
    "Do not include explanations, prose, or markdown code fences."
)


def default_summary() -> Summary:
    return Summary(project_description=DEFAULT_DESCRIPTION, milestones=[], resources=[])


def build_user_prompt(tasks: list[Task], document_type: DocumentType) -> str:
    lines = [f"- {task_preview(task)}" for task in tasks]
    return (
        f"Document type: {document_type.value}\n\n"
        "Tasks:\n" + "\n".join(lines)
    )


async def summarize_tasks(
    client: ResilientLLMClient,
    tasks: list[Task],
    document_type: DocumentType = DocumentType.GENERAL,
    *,
    temperature: float = 0.5,
    cancel_event: asyncio.Event | None = None,
    usage: UsageMeter | None = None,
) -> Summary:
    """Summarize the project behind ``tasks``.

    Never blocks result assembly: a failed call or unusable reply yields the
    neutral default summary.
    """
    if not tasks:
        return default_summary()

    request = LLMRequest(
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(tasks, document_type),
        temperature=temperature,
    )

    try:
        response = await client.complete(request, cancel_event=cancel_event)
    except LLMError as exc:
        logger.warning("Summarization failed, using default summary: %s", exc)
        return default_summary()

    if usage is not None:
        usage.record(response.usage)

    try:
        payload = parse_model_output(response.content, SummaryPayload)
    except UnparsableOutputError as exc:
        logger.warning("Summary reply unusable, using default summary: %s", exc)
        return default_summary()

    return Summary(
        project_description=payload.project_description.strip() or DEFAULT_DESCRIPTION,
        milestones=[m.strip() for m in payload.milestones if m and m.strip()],
        resources=[r.strip() for r in payload.resources if r and r.strip()],
    )
