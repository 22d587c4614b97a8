"""File-system task types: write, template, create, append, mkdir, delete, rename, move, copy.

Every type computes its outcome in one place; ``execute`` applies it and
``diff`` renders it against what is on disk now.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from scaffoldx.dry_run import file_change_preview, new_file_preview
from scaffoldx.tasks.base import (
    atomic_write,
    condition_met,
    config_string,
    read_text,
    render_path,
    require_string,
    require_string_list,
    skipped_preview,
    target_path,
    to_path,
)
from scaffoldx.templating import render_template, validate_template_config
from scaffoldx.types import TaskDefinition

logger = logging.getLogger(__name__)

Context = Mapping[str, Any]


# --------------------------------------------------------------------------
# write / template / create / append
# --------------------------------------------------------------------------


def _validate_rendered_file(config: dict[str, Any], task_type: str) -> list[str]:
    errors = require_string(config, "file", task_type)
    problem = validate_template_config(config)
    if problem:
        errors.append(problem)
    return errors


def validate_write(config: dict[str, Any]) -> list[str]:
    return _validate_rendered_file(config, "write")


def render_write(config: dict[str, Any], context: Context, task: TaskDefinition | None) -> tuple[Path, str]:
    return target_path(config_string(config, "file"), context), render_template(config, context, task)


def execute_write(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping write task")
        return
    path, content = render_write(config, context, task)
    atomic_write(path, content)
    logger.info("Wrote %s", path)


def diff_write(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    path, content = render_write(config, context, task)
    shown = render_path(config["file"], context)
    if not path.exists():
        return new_file_preview(shown, content)
    return file_change_preview(shown, read_text(path), content)


def validate_template(config: dict[str, Any]) -> list[str]:
    return _validate_rendered_file(config, "template")


def execute_template(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping template task")
        return
    path, content = render_write(config, context, task)
    atomic_write(path, content)
    logger.info("Rendered template to %s", path)


def diff_template(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return diff_write(config, context, task)


def validate_create(config: dict[str, Any]) -> list[str]:
    return _validate_rendered_file(config, "create")


def execute_create(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping create task")
        return
    path = target_path(config_string(config, "file"), context)
    if path.exists():
        logger.info("File already exists, skipping: %s", path)
        return
    atomic_write(path, render_template(config, context, task))
    logger.info("Created %s", path)


def diff_create(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    path = target_path(config_string(config, "file"), context)
    shown = render_path(config["file"], context)
    if path.exists():
        return [f"→ File already exists, would be skipped: {shown}"]
    return new_file_preview(shown, render_template(config, context, task))


def _append_template_config(config: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    inline = config.get("content", config.get("template"))
    if inline is not None:
        normalized["template"] = inline
    if config.get("templateFile") is not None:
        normalized["templateFile"] = config["templateFile"]
    return normalized


def validate_append(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "file", "append")
    problem = validate_template_config(_append_template_config(config))
    if problem:
        errors.append(problem.replace('"template"', '"content"/"template"'))
    return errors


def render_append(
    config: dict[str, Any], context: Context, task: TaskDefinition | None
) -> tuple[Path, str | None, str]:
    """Target path, current content (None when missing) and the content after appending."""
    path = target_path(config_string(config, "file"), context)
    addition = render_template(_append_template_config(config), context, task)
    if not path.exists():
        return path, None, addition
    current = read_text(path)
    separator = "\n" if current and not current.endswith("\n") and config.get("newline", True) is not False else ""
    return path, current, current + separator + addition


def execute_append(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping append task")
        return
    path, _, content = render_append(config, context, task)
    atomic_write(path, content)
    logger.info("Appended to %s", path)


def diff_append(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    _, current, content = render_append(config, context, task)
    shown = render_path(config["file"], context)
    if current is None:
        return new_file_preview(shown, content, "+ New file would be created with content")
    return file_change_preview(shown, current, content)


# --------------------------------------------------------------------------
# mkdir / delete
# --------------------------------------------------------------------------


def validate_mkdir(config: dict[str, Any]) -> list[str]:
    return require_string(config, "path", "mkdir")


def execute_mkdir(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping mkdir task")
        return
    path = target_path(config_string(config, "path"), context)
    path.mkdir(parents=True, exist_ok=True)
    logger.info("Created directory %s", path)


def diff_mkdir(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    shown = render_path(config_string(config, "path"), context)
    if to_path(shown).exists():
        return [f"→ Directory already exists: {shown}"]
    return [f"+ Would create directory: {shown}"]


def validate_delete(config: dict[str, Any]) -> list[str]:
    return require_string_list(config, "paths", "delete")


def _delete_targets(config: Mapping[str, Any], context: Context) -> list[tuple[str, Path]]:
    rendered = [render_path(raw, context) for raw in config.get("paths") or []]
    return [(shown, to_path(shown)) for shown in rendered]


def execute_delete(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping deletion")
        return
    for shown, path in _delete_targets(config, context):
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            continue
        logger.info("Deleted %s", shown)


def diff_delete(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    existing = [shown for shown, path in _delete_targets(config, context) if path.exists()]
    if not existing:
        return ["→ No files/directories to delete"]
    return ["Would delete:", *(f"  - {shown}" for shown in existing)]


# --------------------------------------------------------------------------
# rename / move / copy
# --------------------------------------------------------------------------


def validate_from_to(task_type: str):
    def validate(config: dict[str, Any]) -> list[str]:
        return require_string(config, "from", task_type) + require_string(config, "to", task_type)

    return validate


def _endpoints(config: Mapping[str, Any], context: Context) -> tuple[str, str, Path, Path]:
    source = render_path(config_string(config, "from"), context)
    destination = render_path(config_string(config, "to"), context)
    return source, destination, to_path(source), to_path(destination)


def _relocation_preview(verb: str, config: Mapping[str, Any], context: Context) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    source, destination, source_path, destination_path = _endpoints(config, context)
    if not source_path.exists():
        return [f"✗ Source not found: {source}"]
    lines = []
    if destination_path.exists():
        lines.append(f"⚠ Destination already exists: {destination}")
    lines.append(f"Would {verb}: {source} → {destination}")
    return lines


def execute_rename(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping rename task")
        return
    source, destination, source_path, destination_path = _endpoints(config, context)
    if not source_path.exists():
        raise FileNotFoundError(f"Source not found: {source}")
    source_path.rename(destination_path)
    logger.info("Renamed %s to %s", source, destination)


def diff_rename(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return _relocation_preview("rename", config, context)


def execute_move(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping move task")
        return
    source, destination, source_path, destination_path = _endpoints(config, context)
    if not source_path.exists():
        raise FileNotFoundError(f"Source not found: {source}")
    destination_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source_path), str(destination_path))
    logger.info("Moved %s to %s", source, destination)


def diff_move(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    return _relocation_preview("move", config, context)


def execute_copy(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping copy task")
        return
    source, destination, source_path, destination_path = _endpoints(config, context)
    if not source_path.exists():
        logger.warning("Source path does not exist: %s", source)
        return
    destination_path.parent.mkdir(parents=True, exist_ok=True)
    if source_path.is_dir():
        shutil.copytree(source_path, destination_path, dirs_exist_ok=True)
        logger.info("Copied directory %s to %s", source, destination)
    else:
        shutil.copy2(source_path, destination_path)
        logger.info("Copied file %s to %s", source, destination)


def diff_copy(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    _, _, source_path, _ = _endpoints(config, context)
    if source_path.is_dir():
        return _relocation_preview("copy directory", config, context)
    return _relocation_preview("copy file", config, context)
