"""Template compiler used by file-writing tasks.

Inline ``template`` strings use ``{{id}}`` interpolation. ``templateFile``
paths resolve against the directory of the configuration that declared the
task; ``.j2``, ``.jinja`` and ``.hbs`` files are rendered with Jinja2, any
other file is interpolated like an inline template.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError as JinjaTemplateError

from scaffoldx.errors import TemplateError
from scaffoldx.types import TaskDefinition
from scaffoldx.values import interpolate

JINJA_SUFFIXES = (".j2", ".jinja", ".hbs")


def validate_template_config(config: Mapping[str, Any]) -> str | None:
    """Error message when neither or both of ``template``/``templateFile`` are set."""
    has_inline = isinstance(config.get("template"), str)
    has_file = isinstance(config.get("templateFile"), str) and config.get("templateFile") != ""
    if has_inline and has_file:
        return 'Cannot specify both "template" and "templateFile"'
    if not has_inline and not has_file:
        return 'Either "template" or "templateFile" must be specified'
    return None


def resolve_template_path(template_file: str, task: TaskDefinition | None) -> Path:
    path = Path(template_file).expanduser()
    if path.is_absolute():
        return path
    if task is not None and task.base_dir is not None:
        return task.base_dir / path
    return Path.cwd() / path


def render_jinja(path: Path, context: Mapping[str, Any]) -> str:
    env = Environment(loader=FileSystemLoader(str(path.parent)), keep_trailing_newline=True)
    try:
        return env.get_template(path.name).render(**dict(context))
    except JinjaTemplateError as exc:
        raise TemplateError(f"Failed to render template {path}: {exc}") from exc


def render_template(config: Mapping[str, Any], context: Mapping[str, Any], task: TaskDefinition | None = None) -> str:
    """Produce the text a write/create/append task would put on disk."""
    problem = validate_template_config(config)
    if problem is not None:
        raise TemplateError(problem)
    inline = config.get("template")
    if isinstance(inline, str):
        return interpolate(inline, context)
    path = resolve_template_path(str(config["templateFile"]), task)
    if not path.is_file():
        raise TemplateError(f"Template file not found: {path}")
    if path.suffix.lower() in JINJA_SUFFIXES:
        return render_jinja(path, context)
    return interpolate(path.read_text(encoding="utf-8"), context)
