"""Group tasks into named categories with one LLM call."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from src.analysis.models import CategorizationPayload, CategoryAssignment, Task, TaskGroup
from src.llm.client import LLMRequest, ResilientLLMClient, UsageMeter
from src.llm.errors import LLMError, UnparsableOutputError
from src.llm.json_salvage import parse_model_output

logger = logging.getLogger(__name__)

UNCATEGORIZED_GROUP_NAME = "Uncategorized Tasks"
FALLBACK_GROUP_NAME = "Analysis Results"
PREVIEW_LENGTH = 200

SYSTEM_PROMPT = (
    "You organize task lists. Group the tasks you are given into between 2 "
    "and 6 categories with short, descriptive names (for example "
    '"Finance", "Vendor Management", "Follow-ups").\n\n'
    "Every task id must appear in exactly one category. Do not invent ids.\n\n"
    "Respond with exactly one JSON object of the form "
    '{"categories": [{"categoryId": "c1", "categoryName": "...", '
    '"taskIds": ["task-1", "task-2"]}]}. '
    "Do not include explanations, prose, or markdown code fences."
)


def task_preview(task: Task, length: int = PREVIEW_LENGTH) -> str:
    """Task content cut to ``length`` characters."""
    content = task.content
    if len(content) <= length:
        return content
    return content[: length - 3].rstrip() + "..."


def build_user_prompt(tasks: list[Task]) -> str:
    lines = [f"{task.id}: {task_preview(task)}" for task in tasks]
    return "Categorize these tasks:\n\n" + "\n".join(lines)


def _assign(tasks: list[Task], group_id: str) -> list[Task]:
    return [dataclasses.replace(task, group_id=group_id) for task in tasks]


def single_group(tasks: list[Task], name: str = FALLBACK_GROUP_NAME) -> list[TaskGroup]:
    """Every task in one group, used when categorization is unavailable."""
    group_id = "group-1"
    return [TaskGroup(id=group_id, name=name, tasks=_assign(tasks, group_id))]


def build_groups(tasks: list[Task], categories: list[CategoryAssignment]) -> list[TaskGroup]:
    """Turn the model's proposed partition into groups.

    Unknown ids are ignored and an id listed twice stays in the first
    category that claims it.  Categories left empty are dropped.  Tasks the
    model did not place go into a trailing ``Uncategorized Tasks`` group, so
    the groups always partition ``tasks`` exactly.
    """
    by_id = {task.id: task for task in tasks}
    assigned: set[str] = set()
    groups: list[TaskGroup] = []

    for category in categories:
        members: list[Task] = []
        for task_id in category.task_ids:
            task_id = task_id.strip()
            if task_id not in by_id or task_id in assigned:
                continue
            assigned.add(task_id)
            members.append(by_id[task_id])
        if not members:
            continue
        group_id = f"group-{len(groups) + 1}"
        name = category.category_name.strip() or f"Category {len(groups) + 1}"
        groups.append(TaskGroup(id=group_id, name=name, tasks=_assign(members, group_id)))

    leftovers = [task for task in tasks if task.id not in assigned]
    if leftovers:
        logger.warning("%d task(s) were not categorized", len(leftovers))
        group_id = f"group-{len(groups) + 1}"
        groups.append(
            TaskGroup(
                id=group_id,
                name=UNCATEGORIZED_GROUP_NAME,
                tasks=_assign(leftovers, group_id),
            )
        )
    return groups


async def categorize_tasks(
    client: ResilientLLMClient,
    tasks: list[Task],
    *,
    temperature: float = 0.3,
    cancel_event: asyncio.Event | None = None,
    usage: UsageMeter | None = None,
) -> list[TaskGroup]:
    """Categorize ``tasks`` into named groups.

    If the call fails or the reply cannot be parsed, all tasks are returned
    in a single ``Analysis Results`` group instead.

    Returns:
        Groups that together hold every task exactly once.
    """
    if not tasks:
        return []

    request = LLMRequest(
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(tasks),
        temperature=temperature,
    )

    try:
        response = await client.complete(request, cancel_event=cancel_event)
    except LLMError as exc:
        logger.warning("Categorization failed, using a single group: %s", exc)
        return single_group(tasks)

    if usage is not None:
        usage.record(response.usage)

    try:
        payload = parse_model_output(response.content, CategorizationPayload)
    except UnparsableOutputError as exc:
        logger.warning("Categorization reply unusable, using a single group: %s", exc)
        return single_group(tasks)

    if not 2 <= len(payload.categories) <= 6:
        logger.info("Model proposed %d categories (expected 2-6)", len(payload.categories))
    return build_groups(tasks, payload.categories)
