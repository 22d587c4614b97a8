"""Variable declarations: validation and two-phase resolution.

Plain variables resolve before prompts are asked; ``conditional`` ones
resolve afterwards so their conditions can see the answers.
"""

from __future__ import annotations

import logging
from collections import ChainMap
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from scaffoldx.process import DEFAULT_EXEC_TIMEOUT
from scaffoldx.transformers import TransformerManager
from scaffoldx.types import IDENTIFIER_RE, TaskDefinition, VariableDefinition
from scaffoldx.values import VALUE_TYPES, is_value_spec, resolve_all

logger = logging.getLogger(__name__)


def is_conditional(variable: VariableDefinition) -> bool:
    return is_value_spec(variable.value) and variable.value.get("type") == "conditional"


def split_variables(
    variables: Iterable[VariableDefinition],
) -> tuple[list[VariableDefinition], list[VariableDefinition]]:
    """Partition into (plain, conditional), each in declaration order."""
    plain: list[VariableDefinition] = []
    conditional: list[VariableDefinition] = []
    for variable in variables:
        (conditional if is_conditional(variable) else plain).append(variable)
    return plain, conditional


def _validate_variable(variable: VariableDefinition, where: str) -> list[str]:
    errors: list[str] = []
    if not IDENTIFIER_RE.match(variable.id):
        errors.append(
            f'{where}Variable "{variable.id}": id must start with a letter, "_" or "$" '
            "and contain only letters, digits, \"_\" or \"$\""
        )
    if is_value_spec(variable.value):
        value_type = variable.value.get("type")
        if value_type not in VALUE_TYPES:
            errors.append(f'{where}Variable "{variable.id}": unknown value type "{value_type}"')
        elif value_type == "conditional" and not isinstance(variable.value.get("condition"), str):
            errors.append(f'{where}Variable "{variable.id}": conditional value requires a "condition" string')
    return errors


def validate_variables(
    variables: Sequence[VariableDefinition],
    tasks: Sequence[TaskDefinition] = (),
) -> list[str]:
    errors: list[str] = []
    for variable in variables:
        errors.extend(_validate_variable(variable, ""))
    for task in tasks:
        seen: set[str] = set()
        for variable in task.variables:
            where = f'Task "{task.id}" ({task.name}): '
            if variable.id in seen:
                errors.append(f'{where}Duplicate variable ID "{variable.id}"')
            seen.add(variable.id)
            errors.extend(_validate_variable(variable, where))
    return errors


async def resolve_variables(
    variables: Iterable[VariableDefinition],
    context: Mapping[str, Any],
    *,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
    transformers: TransformerManager | None = None,
) -> dict[str, Any]:
    """Resolve a batch concurrently against ``context``; unresolved ids are omitted.

    Each resolved value then runs through its variable's ``transformers``, in
    declaration order, seeing ``context`` plus this batch's values.
    """
    variables = list(variables)
    specs = {variable.id: variable.value for variable in variables}
    if not specs:
        return {}
    resolved = await resolve_all(specs, context, kind="Variable", timeout=timeout, cwd=cwd)
    missing = [item_id for item_id in specs if item_id not in resolved]
    if missing:
        logger.debug("Variables left unset: %s", ", ".join(missing))
    if any(variable.transformers for variable in variables):
        manager = transformers if transformers is not None else TransformerManager()
        for variable in variables:
            if variable.transformers and variable.id in resolved:
                resolved[variable.id] = manager.apply(
                    variable.transformers, resolved[variable.id], ChainMap(resolved, context)
                )
    return resolved
