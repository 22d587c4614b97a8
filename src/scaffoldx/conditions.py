"""Enablement and ``required`` decisions for documents, tasks and prompts.

Accepted forms for a ConditionSpec::

    true / false
    "expression"                         (shorthand)
    {"condition": "expression"}
    {"type": "condition", "value": "expression"}
    {"type": "exec", "value": "shell command"}

Exec forms cannot be decided synchronously. ``evaluate_enabled`` treats them
as enabled (to be decided later by ``evaluate_enabled_async``);
``evaluate_required`` treats them as not required.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from scaffoldx.expressions import ExpressionError, evaluate_condition, evaluate_expression, is_truthy
from scaffoldx.process import DEFAULT_EXEC_TIMEOUT, ExecTimeoutError, run_shell_async
from scaffoldx.values import interpolate

logger = logging.getLogger(__name__)

_FALSE_OUTPUTS = frozenset({"false", "0", "no"})


def normalize_condition(value: Any) -> bool | tuple[str, str] | None:
    """Reduce any accepted form to ``bool``, ``("condition", expr)`` or ``("exec", cmd)``.

    Returns ``None`` when unset and raises ValueError for unrecognised shapes.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return ("condition", value)
    if isinstance(value, Mapping):
        kind = value.get("type")
        if kind is None and isinstance(value.get("condition"), str):
            return ("condition", value["condition"])
        if kind in ("condition", "exec") and isinstance(value.get("value"), str):
            return (kind, value["value"])
    raise ValueError(f"Unsupported condition value: {value!r}")


def is_literal_false(value: Any) -> bool:
    return value is False


def evaluate_enabled(value: Any, context: Mapping[str, Any], *, lazy: bool = False) -> bool:
    """Synchronous enablement. Unset means enabled; exec forms count as enabled."""
    try:
        normalized = normalize_condition(value)
    except ValueError:
        return False
    if normalized is None:
        return True
    if isinstance(normalized, bool):
        return normalized
    kind, payload = normalized
    if kind == "exec":
        return True
    return evaluate_condition(payload, context, lazy=lazy)


async def evaluate_enabled_async(
    value: Any,
    context: Mapping[str, Any],
    *,
    lazy: bool = False,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
) -> bool:
    """Enablement including exec forms, which run the command and read its output."""
    try:
        normalized = normalize_condition(value)
    except ValueError:
        return False
    if isinstance(normalized, tuple) and normalized[0] == "exec":
        return await _exec_output_flag(normalized[1], context, timeout=timeout, cwd=cwd)
    return evaluate_enabled(value, context, lazy=lazy)


async def _exec_output_flag(
    command: str,
    context: Mapping[str, Any],
    *,
    timeout: float,
    cwd: Path | None,
) -> bool:
    rendered = interpolate(command, context)
    try:
        result = await run_shell_async(rendered, cwd=cwd, timeout=timeout)
    except (ExecTimeoutError, OSError) as exc:
        logger.warning("Failed to execute enabled command: %s (%s)", rendered, exc)
        return False
    if not result.ok:
        logger.debug("Enabled command exited %d: %s", result.returncode, rendered)
        return False
    output = result.stdout.strip()
    if not output:
        return False
    return output.lower() not in _FALSE_OUTPUTS


def _required_condition(expression: str, context: Mapping[str, Any]) -> bool:
    try:
        return is_truthy(evaluate_expression(expression, context))
    except ExpressionError:
        return True


def evaluate_required(value: Any, context: Mapping[str, Any]) -> bool:
    """Synchronous ``required``. Unset and unrecognised values mean required."""
    try:
        normalized = normalize_condition(value)
    except ValueError:
        return True
    if normalized is None:
        return True
    if isinstance(normalized, bool):
        return normalized
    kind, payload = normalized
    if kind == "exec":
        return False
    return _required_condition(payload, context)


async def evaluate_required_async(
    value: Any,
    context: Mapping[str, Any],
    *,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
) -> bool:
    """``required`` including exec forms: exit status 0 means required."""
    try:
        normalized = normalize_condition(value)
    except ValueError:
        return True
    if not (isinstance(normalized, tuple) and normalized[0] == "exec"):
        return evaluate_required(value, context)
    rendered = interpolate(normalized[1], context)
    try:
        result = await run_shell_async(rendered, cwd=cwd, timeout=timeout)
    except (ExecTimeoutError, OSError) as exc:
        logger.warning("Failed to execute required command: %s (%s)", rendered, exc)
        return False
    if not result.ok:
        logger.warning("Failed to execute required command: %s (exit %d)", rendered, result.returncode)
        return False
    return True
