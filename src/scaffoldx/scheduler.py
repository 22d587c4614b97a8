"""Dependency ordering for tasks."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from scaffoldx.errors import CircularDependencyError, UnknownDependencyError
from scaffoldx.types import TaskDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedTask:
    task: TaskDefinition
    # 0 for tasks with no (live) dependencies, else 1 + the highest dependency rank
    rank: int


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered tasks for one run; built right before execution and then discarded."""

    entries: tuple[PlannedTask, ...]

    def __iter__(self) -> Iterator[PlannedTask]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def tasks(self) -> list[TaskDefinition]:
        return [entry.task for entry in self.entries]

    @property
    def task_ids(self) -> list[str]:
        return [entry.task.id for entry in self.entries]

    def to_dict(self) -> dict:
        return {
            "tasks": [
                {
                    "id": entry.task.id,
                    "name": entry.task.name,
                    "type": entry.task.type,
                    "rank": entry.rank,
                    "dependencies": list(entry.task.dependencies),
                }
                for entry in self.entries
            ]
        }


def build_execution_plan(
    tasks: Sequence[TaskDefinition],
    removed_ids: Iterable[str] = (),
) -> ExecutionPlan:
    """Stable topological order of ``tasks``.

    Tasks are taken in declaration order; each pass appends the first task
    whose dependencies are all scheduled. A dependency listed in
    ``removed_ids`` (a disabled task) counts as already satisfied.

    Raises:
        UnknownDependencyError: a dependency names no task at all.
        CircularDependencyError: no task can make progress.
    """
    known = {task.id for task in tasks}
    removed = set(removed_ids) - known
    for task in tasks:
        for dependency in task.dependencies:
            if dependency not in known and dependency not in removed:
                raise UnknownDependencyError(task.id, dependency)

    ranks: dict[str, int] = {}
    pending = list(tasks)
    entries: list[PlannedTask] = []
    while pending:
        for index, task in enumerate(pending):
            live = [dep for dep in task.dependencies if dep in known]
            if all(dep in ranks for dep in live):
                rank = 1 + max((ranks[dep] for dep in live), default=-1)
                ranks[task.id] = rank
                entries.append(PlannedTask(task=task, rank=rank))
                del pending[index]
                break
        else:
            raise CircularDependencyError.for_tasks(_find_cycle(pending))

    logger.debug("Scheduled %d task(s): %s", len(entries), ", ".join(e.task.id for e in entries))
    return ExecutionPlan(entries=tuple(entries))


def schedule(tasks: Sequence[TaskDefinition], removed_ids: Iterable[str] = ()) -> list[TaskDefinition]:
    """Ordered tasks only; see ``build_execution_plan``."""
    return build_execution_plan(tasks, removed_ids).tasks


def _find_cycle(pending: Sequence[TaskDefinition]) -> list[str]:
    # every pending task waits on at least one other pending task
    by_id = {task.id: task for task in pending}
    current = pending[0].id
    path: list[str] = []
    while current not in path:
        path.append(current)
        current = next(dep for dep in by_id[current].dependencies if dep in by_id)
    return [*path[path.index(current):], current]
