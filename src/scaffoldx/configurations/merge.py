"""Fold configuration documents into one effective configuration."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence
from typing import TypeVar

from scaffoldx.conditions import is_literal_false
from scaffoldx.errors import CircularDependencyError, DuplicateIdError
from scaffoldx.types import (
    Configuration,
    ConfigurationDocument,
    PromptDefinition,
    TaskDefinition,
    TransformerDefinition,
    VariableDefinition,
)

logger = logging.getLogger(__name__)

# Fields that cannot coexist in one task config; setting one drops the others.
CONFLICTING_FIELDS: dict[str, tuple[tuple[str, ...], ...]] = {
    "write": (("template", "templateFile"),),
    "create": (("template", "templateFile"),),
    "template": (("template", "templateFile"),),
    "append": (("template", "templateFile", "content"),),
}

_T = TypeVar("_T", TaskDefinition, PromptDefinition, VariableDefinition)


def merge_task_config(base: dict, override: dict, task_type: str) -> dict:
    merged = dict(base)
    groups = CONFLICTING_FIELDS.get(task_type, ())
    for key, value in override.items():
        for group in groups:
            if key in group:
                for other in group:
                    if other != key:
                        merged.pop(other, None)
                break
        merged[key] = value
    return merged


def merge_task(base: TaskDefinition, override: TaskDefinition) -> TaskDefinition:
    """Apply ``override`` (which carries ``override: merge|replace``) onto ``base``."""
    if override.override == "replace":
        logger.info('Task "%s" replaces the inherited definition', override.id)
        return dataclasses.replace(override, override=None)

    logger.info('Merging task "%s"', override.id)
    task_type = override.type or base.type
    dependencies = tuple(dict.fromkeys([*base.dependencies, *override.dependencies]))
    return dataclasses.replace(
        base,
        name=override.name if override.name != override.id else base.name,
        type=task_type,
        config=merge_task_config(base.config, override.config, task_type),
        description=override.description or base.description,
        required=override.required if override.required is not None else base.required,
        enabled=override.enabled if override.enabled is not None else base.enabled,
        dependencies=dependencies,
        prompts=override.prompts or base.prompts,
        variables=override.variables or base.variables,
        source_path=override.source_path or base.source_path,
        source_enabled=override.source_enabled if override.source_enabled is not None else base.source_enabled,
        override=None,
    )


def merge_prompt(base: PromptDefinition, override: PromptDefinition) -> PromptDefinition:
    if override.override == "replace":
        return dataclasses.replace(override, override=None)
    changes = {
        field.name: getattr(override, field.name)
        for field in dataclasses.fields(PromptDefinition)
        if field.name not in ("id", "override", "global_") and getattr(override, field.name) not in (None, "", ())
    }
    return dataclasses.replace(base, **changes, override=None)


def merge_variable(base: VariableDefinition, override: VariableDefinition) -> VariableDefinition:
    if override.override == "replace":
        return dataclasses.replace(override, override=None)
    return dataclasses.replace(
        base, value=override.value, transformers=override.transformers or base.transformers, override=None
    )


def _merge_entries(
    existing: Sequence[_T],
    incoming: Iterable[_T],
    kind: str,
    merge,
) -> tuple[_T, ...]:
    by_id: dict[str, _T] = {item.id: item for item in existing}
    for item in incoming:
        if item.id in by_id:
            if item.override is None:
                raise DuplicateIdError(item.id, kind)
            by_id[item.id] = merge(by_id[item.id], item)
        else:
            by_id[item.id] = dataclasses.replace(item, override=None) if item.override else item
    return tuple(by_id.values())


def validate_unique_ids(
    tasks: Iterable[TaskDefinition],
    variables: Iterable[VariableDefinition] = (),
    prompts: Iterable[PromptDefinition] = (),
) -> None:
    """Ids are unique across tasks, variables and prompts together."""
    seen: dict[str, str] = {}
    for kind, items in (("task", tasks), ("variable", variables), ("prompt", prompts)):
        for item in items:
            if item.id in seen:
                raise DuplicateIdError(item.id, kind, seen[item.id])
            seen[item.id] = kind


def merge_document(accumulated: Configuration | None, document: ConfigurationDocument) -> Configuration:
    """Merge one more document onto the result of everything before it."""
    own_tasks: tuple[TaskDefinition, ...] = document.tasks
    dropped: tuple[str, ...] = ()
    if is_literal_false(document.enabled):
        logger.info('Skipping tasks of disabled configuration "%s"', document.name)
        dropped = tuple(task.id for task in own_tasks)
        own_tasks = ()
    elif document.enabled is not None and not isinstance(document.enabled, bool):
        own_tasks = tuple(dataclasses.replace(task, source_enabled=document.enabled) for task in own_tasks)

    if accumulated is None:
        base_tasks: tuple[TaskDefinition, ...] = ()
        base_prompts: tuple[PromptDefinition, ...] = ()
        base_variables: tuple[VariableDefinition, ...] = ()
        inherited_enabled = None
        description = ""
        dependencies: tuple[str, ...] = ()
        sources: tuple = ()
        disabled: tuple[str, ...] = ()
        base_transformers: tuple[TransformerDefinition, ...] = ()
    else:
        base_tasks = accumulated.tasks
        base_prompts = accumulated.prompts
        base_variables = accumulated.variables
        # a literal false was spent on dropping that document's own tasks
        inherited_enabled = None if is_literal_false(accumulated.enabled) else accumulated.enabled
        description = accumulated.description
        dependencies = accumulated.dependencies
        sources = accumulated.sources
        disabled = accumulated.disabled_task_ids
        base_transformers = accumulated.transformers

    tasks = _merge_entries(base_tasks, own_tasks, "task", merge_task)
    prompts = _merge_entries(base_prompts, document.prompts, "prompt", merge_prompt)
    variables = _merge_entries(base_variables, document.variables, "variable", merge_variable)
    validate_unique_ids(tasks, variables, prompts)
    live = {task.id for task in tasks}
    disabled_ids = tuple(item for item in dict.fromkeys([*disabled, *dropped]) if item not in live)
    # a redeclared transformer id replaces the inherited definition in place
    transformers = {item.id: item for item in (*base_transformers, *document.transformers)}

    return Configuration(
        name=document.name,
        path=document.path,
        description=document.description or description,
        enabled=document.enabled if document.enabled is not None else inherited_enabled,
        dependencies=tuple(dict.fromkeys([*dependencies, *document.dependencies])),
        variables=variables,
        prompts=prompts,
        tasks=tasks,
        transformers=tuple(transformers.values()),
        sources=(*sources, document.path),
        disabled_task_ids=disabled_ids,
    )


def merge_configurations(documents: Sequence[ConfigurationDocument]) -> Configuration:
    """Left fold of ``merge_document``; ancestors first, the requested file last."""
    if not documents:
        raise ValueError("merge_configurations() needs at least one document")
    merged: Configuration | None = None
    for document in documents:
        merged = merge_document(merged, document)
    assert merged is not None
    return merged


def order_by_dependencies(documents: Sequence[ConfigurationDocument]) -> list[ConfigurationDocument]:
    """Stable re-order so a document merges after the documents it names in ``dependencies``.

    Names not present in ``documents`` are ignored. Duplicate names disable
    re-ordering because names no longer identify a single document.
    """
    names = [document.name for document in documents]
    if len(set(names)) != len(names):
        return list(documents)
    present = set(names)
    for document in documents:
        for missing in sorted(set(document.dependencies) - present):
            logger.debug('Configuration "%s" depends on "%s", which is not loaded', document.name, missing)
    pending = list(documents)
    placed: set[str] = set()
    ordered: list[ConfigurationDocument] = []
    while pending:
        for index, document in enumerate(pending):
            wanted = [dep for dep in document.dependencies if dep in present]
            if all(dep in placed for dep in wanted):
                ordered.append(document)
                placed.add(document.name)
                del pending[index]
                break
        else:
            raise CircularDependencyError.for_configurations(_find_cycle(pending))
    return ordered


def _find_cycle(pending: Sequence[ConfigurationDocument]) -> list[str]:
    by_name = {document.name: document for document in pending}
    current = pending[0].name
    path: list[str] = []
    while current not in path:
        path.append(current)
        current = next(dep for dep in by_name[current].dependencies if dep in by_name)
    return [*path[path.index(current):], current]
