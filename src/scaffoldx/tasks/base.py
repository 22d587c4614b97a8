"""Helpers shared by the built-in task types."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from scaffoldx.dry_run import CONDITION_SKIPPED
from scaffoldx.errors import PluginConfigurationError
from scaffoldx.expressions import evaluate_condition
from scaffoldx.values import interpolate

logger = logging.getLogger(__name__)


def condition_met(config: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
    """Optional ``config.condition`` expression; absent or empty means run."""
    condition = config.get("condition")
    if not condition:
        return True
    return evaluate_condition(condition, context)


def skipped_preview() -> list[str]:
    return [CONDITION_SKIPPED]


def render_path(value: str, context: Mapping[str, Any]) -> str:
    return interpolate(value, context)


def to_path(rendered: str) -> Path:
    path = Path(rendered).expanduser()
    return path if path.is_absolute() else Path.cwd() / path


def target_path(value: str, context: Mapping[str, Any]) -> Path:
    """Interpolate a configured path; relative paths are under the working directory."""
    return to_path(render_path(value, context))


def require_string(config: Mapping[str, Any], key: str, task_type: str) -> list[str]:
    value = config.get(key)
    if not isinstance(value, str) or value == "":
        return [f'{task_type.capitalize()} task requires "{key}" property']
    return []


def require_string_list(config: Mapping[str, Any], key: str, task_type: str) -> list[str]:
    value = config.get(key)
    if not isinstance(value, list) or not value or not all(isinstance(item, str) for item in value):
        return [f'{task_type.capitalize()} task requires "{key}" to be a non-empty array of strings']
    return []


def config_string(config: Mapping[str, Any], key: str) -> str:
    value = config.get(key)
    if not isinstance(value, str) or value == "":
        raise PluginConfigurationError(f'Task config is missing "{key}"')
    return value


def atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            prefix=f".{path.name}.",
            suffix=".scaffoldx.tmp",
        ) as tmp_file:
            tmp_file.write(content)
            tmp_path = Path(tmp_file.name)
        os.chmod(tmp_path, _file_mode(path))
        os.replace(tmp_path, path)
    except Exception:
        if "tmp_path" in locals() and tmp_path.exists():
            tmp_path.unlink()
        raise


def _file_mode(path: Path) -> int:
    if path.exists():
        return path.stat().st_mode & 0o777
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")
