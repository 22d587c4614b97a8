"""Dry-run previews: what each scheduled task would change, without touching disk."""

from __future__ import annotations

import difflib
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from scaffoldx.conditions import evaluate_enabled_async
from scaffoldx.plugins.registry import PluginRegistry
from scaffoldx.scheduler import ExecutionPlan, PlannedTask
from scaffoldx.types import TaskDefinition

logger = logging.getLogger(__name__)

PREVIEW_LINES = 10
CONDITION_SKIPPED = "⊘ Condition not met - task would be skipped"
TASK_SKIPPED = "⊘ skipped — condition not met"
NO_CHANGES = "→ No changes"

STATUS_PREVIEW = "preview"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"

ScopeFn = Callable[[TaskDefinition, Mapping[str, Any]], Awaitable[Mapping[str, Any]]]


def generate_diff(original: str, modified: str) -> list[str]:
    """Line diff with ``- ``/``+ `` prefixes and two-space context lines."""
    return [
        line
        for line in difflib.ndiff(original.splitlines(), modified.splitlines())
        if not line.startswith("? ")
    ]


def content_preview(content: str, limit: int = PREVIEW_LINES) -> list[str]:
    lines = content.split("\n")
    preview = lines[:limit]
    if len(lines) > limit:
        preview.append("...")
    return preview


def new_file_preview(path: str, content: str, headline: str = "+ New file would be created") -> list[str]:
    return [f"File: {path}", headline, "Content preview:", *content_preview(content)]


def file_change_preview(path: str, current: str, modified: str, unchanged: str = NO_CHANGES) -> list[str]:
    if current == modified:
        return [unchanged]
    return [f"File: {path}", *generate_diff(current, modified)]


@dataclass(frozen=True)
class TaskPreview:
    task_id: str
    name: str
    type: str
    status: str
    lines: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.task_id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "lines": list(self.lines),
        }


@dataclass
class DryRunReport:
    """Ordered previews for one run."""

    previews: list[TaskPreview] = field(default_factory=list)

    @property
    def errors(self) -> list[TaskPreview]:
        return [p for p in self.previews if p.status == STATUS_ERROR]

    @property
    def skipped(self) -> list[TaskPreview]:
        return [p for p in self.previews if p.status == STATUS_SKIPPED]

    def render(self) -> str:
        blocks: list[str] = []
        total = len(self.previews)
        for index, preview in enumerate(self.previews, start=1):
            header = f"[{index}/{total}] {preview.name} ({preview.type})"
            blocks.append("\n".join([header, *(f"  {line}" for line in preview.lines)]))
        return "\n\n".join(blocks)

    def to_dict(self) -> dict[str, Any]:
        return {"tasks": [p.to_dict() for p in self.previews]}


async def is_task_enabled(
    task: TaskDefinition,
    context: Mapping[str, Any],
    *,
    timeout: float | None = None,
) -> bool:
    """Strict check: the declaring document's condition, then the task's own."""
    kwargs: dict[str, Any] = {} if timeout is None else {"timeout": timeout}
    if task.source_enabled is not None and not await evaluate_enabled_async(task.source_enabled, context, **kwargs):
        return False
    return await evaluate_enabled_async(task.enabled, context, **kwargs)


async def preview_task(
    task: TaskDefinition,
    context: Mapping[str, Any],
    registry: PluginRegistry,
    *,
    scope: ScopeFn | None = None,
    timeout: float | None = None,
) -> TaskPreview:
    try:
        if not await is_task_enabled(task, context, timeout=timeout):
            return TaskPreview(task.id, task.name, task.type, STATUS_SKIPPED, (TASK_SKIPPED,))
        task_context = await scope(task, context) if scope is not None else context
        lines = await registry.diff(task, task_context)
    except Exception as exc:
        logger.debug("Preview of task %s failed", task.id, exc_info=True)
        return TaskPreview(task.id, task.name, task.type, STATUS_ERROR, (f"✗ Error: {exc}",))
    return TaskPreview(task.id, task.name, task.type, STATUS_PREVIEW, tuple(lines))


async def preview_all(
    plan: ExecutionPlan | Iterable[TaskDefinition | PlannedTask],
    context: Mapping[str, Any],
    registry: PluginRegistry,
    *,
    scope: ScopeFn | None = None,
    timeout: float | None = None,
) -> DryRunReport:
    """Preview every task in scheduler order.

    A failing preview is recorded as an ``error`` entry and the remaining
    tasks are still previewed.
    """
    report = DryRunReport()
    for entry in plan:
        task = entry.task if isinstance(entry, PlannedTask) else entry
        report.previews.append(
            await preview_task(task, context, registry, scope=scope, timeout=timeout)
        )
    return report
