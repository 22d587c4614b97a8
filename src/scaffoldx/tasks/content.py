"""Content-editing task types: update-json, regex-replace, replace-in-file."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from scaffoldx.dry_run import file_change_preview
from scaffoldx.patterns import compile_pattern, replacement_template
from scaffoldx.tasks.base import (
    atomic_write,
    condition_met,
    config_string,
    read_text,
    render_path,
    require_string,
    skipped_preview,
    to_path,
)
from scaffoldx.types import TaskDefinition
from scaffoldx.values import interpolate

logger = logging.getLogger(__name__)

Context = Mapping[str, Any]
JSON_INDENT = 2


def _existing_file(config: Mapping[str, Any], context: Context) -> tuple[str, Path]:
    shown = render_path(config_string(config, "file"), context)
    path = to_path(shown)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {shown}")
    return shown, path


def _preview(config: dict[str, Any], context: Context, render, unchanged: str = "→ No changes") -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    shown = render_path(config_string(config, "file"), context)
    if not to_path(shown).is_file():
        return [f"✗ File not found: {shown}"]
    _, current, modified = render(config, context)
    return file_change_preview(shown, current, modified, unchanged)


# --------------------------------------------------------------------------
# update-json
# --------------------------------------------------------------------------


def _interpolate_deep(value: Any, context: Context) -> Any:
    if isinstance(value, str):
        return interpolate(value, context)
    if isinstance(value, list):
        return [_interpolate_deep(item, context) for item in value]
    if isinstance(value, dict):
        return {key: _interpolate_deep(item, context) for key, item in value.items()}
    return value


def set_nested(target: dict[str, Any], dotted: str, value: Any) -> None:
    """Assign ``a.b.c``, creating (or replacing non-object) intermediate levels."""
    keys = dotted.split(".")
    current = target
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def validate_update_json(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "file", "update-json")
    if not isinstance(config.get("updates"), dict):
        errors.append('Update-json task requires "updates" to be an object')
    return errors


def render_update_json(config: Mapping[str, Any], context: Context) -> tuple[Path, str, str]:
    _, path = _existing_file(config, context)
    current = read_text(path)
    document = json.loads(current)
    if not isinstance(document, dict):
        raise ValueError(f"{path.name} does not contain a JSON object")
    for key, value in (config.get("updates") or {}).items():
        set_nested(document, key, _interpolate_deep(value, context))
    return path, current, json.dumps(document, indent=JSON_INDENT, ensure_ascii=False) + "\n"


def execute_update_json(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping update-json task")
        return
    path, _, modified = render_update_json(config, context)
    atomic_write(path, modified)
    logger.info("Updated %s", path)


def diff_update_json(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return _preview(config, context, render_update_json)


# --------------------------------------------------------------------------
# regex-replace
# --------------------------------------------------------------------------


def validate_regex_replace(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "file", "regex-replace") + require_string(config, "pattern", "regex-replace")
    if "replacement" in config and not isinstance(config["replacement"], str):
        errors.append('Regex-replace task "replacement" must be a string')
    if isinstance(config.get("pattern"), str):
        try:
            compile_pattern(config["pattern"], str(config.get("flags", "")))
        except (re.error, ValueError) as exc:
            errors.append(f"Invalid regular expression: {exc}")
    return errors


def render_regex_replace(config: Mapping[str, Any], context: Context) -> tuple[Path, str, str]:
    _, path = _existing_file(config, context)
    current = read_text(path)
    regex, count = compile_pattern(config_string(config, "pattern"), str(config.get("flags", "")))
    replacement = replacement_template(interpolate(str(config.get("replacement") or ""), context))
    return path, current, regex.sub(replacement, current, count=count)


def execute_regex_replace(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping regex-replace task")
        return
    path, current, modified = render_regex_replace(config, context)
    if modified != current:
        atomic_write(path, modified)
    logger.info("Applied regex replacement to %s", path)


def diff_regex_replace(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return _preview(config, context, render_regex_replace, "→ No matches found")


# --------------------------------------------------------------------------
# replace-in-file
# --------------------------------------------------------------------------


def validate_replace_in_file(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "file", "replace-in-file")
    replacements = config.get("replacements")
    if not isinstance(replacements, list) or not replacements:
        errors.append('Replace-in-file task requires a non-empty "replacements" array')
        return errors
    for index, item in enumerate(replacements):
        if not isinstance(item, dict) or not all(isinstance(item.get(key), str) for key in ("find", "replace")):
            errors.append(f'Replacement #{index + 1} must have string "find" and "replace" fields')
    return errors


def render_replace_in_file(config: Mapping[str, Any], context: Context) -> tuple[Path, str, str]:
    _, path = _existing_file(config, context)
    current = read_text(path)
    modified = current
    for item in config.get("replacements") or []:
        find = interpolate(item["find"], context)
        replace = interpolate(item["replace"], context)
        # first occurrence only
        modified = modified.replace(find, replace, 1)
    return path, current, modified


def execute_replace_in_file(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping replace-in-file task")
        return
    path, current, modified = render_replace_in_file(config, context)
    if modified != current:
        atomic_write(path, modified)
    logger.info("Replaced content in %s", path)


def diff_replace_in_file(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return _preview(config, context, render_replace_in_file)
