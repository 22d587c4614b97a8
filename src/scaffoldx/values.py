"""Value resolution for variables and prompt defaults.

A declared value is either a literal or a tagged ``ValueSpec``::

    {"type": "static", "value": ...}
    {"type": "exec", "value": "git config user.name"}
    {"type": "interpolate", "value": "{{owner}}/{{repo}}"}
    {"type": "conditional", "condition": "useTs", "ifTrue": ..., "ifFalse": ...}

Failures never propagate: they are logged and the value resolves to ``None``
so the run continues with that id unset.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from scaffoldx.expressions import evaluate_condition, to_display_string
from scaffoldx.process import DEFAULT_EXEC_TIMEOUT, ExecTimeoutError, run_shell_async

logger = logging.getLogger(__name__)

VALUE_TYPES = ("static", "exec", "interpolate", "conditional")

_PLACEHOLDER_RE = re.compile(r"\{\{([\w.]+)\}\}")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def get_nested(context: Mapping[str, Any], dotted: str) -> Any:
    """Look up ``a.b.c`` in nested mappings; missing segments give ``None``."""
    current: Any = context
    for segment in dotted.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def interpolate(template: str, context: Mapping[str, Any]) -> str:
    """Replace every ``{{id}}`` / ``{{a.b}}`` token; unresolved tokens render empty."""

    def replace(match: re.Match[str]) -> str:
        return to_display_string(get_nested(context, match.group(1)))

    return _PLACEHOLDER_RE.sub(replace, template)


def has_placeholders(text: str) -> bool:
    return _PLACEHOLDER_RE.search(text) is not None


def parse_output(output: str) -> Any:
    """Coerce trimmed command output into JSON, a number, a bool or a string."""
    if output.startswith(("{", "[")):
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            return output
    if _NUMBER_RE.match(output):
        return float(output) if "." in output else int(output)
    if output in ("true", "false"):
        return output == "true"
    return output


def is_value_spec(value: Any) -> bool:
    return isinstance(value, Mapping) and "type" in value


async def resolve_value(
    spec: Any,
    item_id: str,
    context: Mapping[str, Any] | None = None,
    *,
    kind: str = "Variable",
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
) -> Any:
    """Resolve one declared value. Returns ``None`` when it cannot be resolved."""
    if spec is None:
        return None
    if isinstance(spec, str):
        if context is not None and has_placeholders(spec):
            return interpolate(spec, context)
        return spec
    if not isinstance(spec, Mapping):
        return spec

    value_type = spec.get("type")
    if value_type is None:
        # an untagged object is its own static value
        return dict(spec)

    if value_type == "static":
        return spec.get("value")

    if value_type == "interpolate":
        template = spec.get("value")
        if not isinstance(template, str):
            logger.error('%s "%s": interpolate value must be a string with {{variable}} placeholders', kind, item_id)
            return None
        if context is None:
            logger.warning('%s "%s": interpolate value requires context but none provided', kind, item_id)
            return template
        return interpolate(template, context)

    if value_type == "exec":
        command = spec.get("value")
        if not isinstance(command, str):
            logger.error('%s "%s": exec value must have a string command', kind, item_id)
            return None
        return await _resolve_exec(command, item_id, context, kind=kind, timeout=timeout, cwd=cwd)

    if value_type == "conditional":
        if context is None:
            logger.warning('%s "%s": conditional value requires context but none provided', kind, item_id)
            return None
        condition = spec.get("condition")
        if not isinstance(condition, str):
            logger.error('%s "%s": conditional value must have a string condition', kind, item_id)
            return None
        selected = spec.get("ifTrue") if evaluate_condition(condition, context) else spec.get("ifFalse")
        if isinstance(selected, Mapping):
            return await resolve_value(selected, item_id, context, kind=kind, timeout=timeout, cwd=cwd)
        if isinstance(selected, str) and has_placeholders(selected):
            return interpolate(selected, context)
        return selected

    logger.error(
        '%s "%s": unknown value type "%s". Expected one of: %s.',
        kind,
        item_id,
        value_type,
        ", ".join(f'"{name}"' for name in VALUE_TYPES),
    )
    return None


async def _resolve_exec(
    command: str,
    item_id: str,
    context: Mapping[str, Any] | None,
    *,
    kind: str,
    timeout: float,
    cwd: Path | None,
) -> Any:
    if context is not None:
        command = interpolate(command, context)
    try:
        result = await run_shell_async(command, cwd=cwd, timeout=timeout)
    except ExecTimeoutError as exc:
        logger.warning('%s "%s": failed to execute command: %s', kind, item_id, exc)
        return None
    except OSError as exc:
        logger.warning('%s "%s": failed to execute command: %s', kind, item_id, exc)
        return None
    if not result.ok:
        logger.warning(
            '%s "%s": failed to execute command: %s (exit %d)', kind, item_id, command, result.returncode
        )
        logger.debug("stderr: %s", result.stderr.strip())
        return None
    return parse_output(result.stdout.strip())


async def resolve_all(
    specs: Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
    *,
    kind: str = "Variable",
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
) -> dict[str, Any]:
    """Resolve every ``id -> spec`` entry concurrently.

    Entries only see ``context``, never each other. Ids whose value resolves
    to ``None`` are left out. The result keeps declaration order.
    """
    ids = list(specs)
    resolved = await asyncio.gather(
        *(
            resolve_value(specs[item_id], item_id, context, kind=kind, timeout=timeout, cwd=cwd)
            for item_id in ids
        )
    )
    return {item_id: value for item_id, value in zip(ids, resolved) if value is not None}
