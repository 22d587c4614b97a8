"""System task types: exec, exec-file and git-init."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from scaffoldx.errors import PluginConfigurationError
from scaffoldx.process import run_command, run_git, run_shell
from scaffoldx.tasks.base import condition_met, config_string, render_path, require_string, skipped_preview, to_path
from scaffoldx.types import TaskDefinition
from scaffoldx.values import interpolate

logger = logging.getLogger(__name__)

Context = Mapping[str, Any]
DEFAULT_COMMIT_MESSAGE = "Initial commit"

RUNTIME_COMMANDS: dict[str, tuple[str, ...]] = {
    "node": ("node",),
    "bash": ("bash",),
    "sh": ("sh",),
    "pwsh": ("pwsh", "-File"),
    "powershell": ("powershell", "-File"),
    "python": (sys.executable,),
}
EXTENSION_RUNTIMES = {
    ".js": "node",
    ".cjs": "node",
    ".mjs": "node",
    ".sh": "bash",
    ".bash": "bash",
    ".ps1": "pwsh",
    ".py": "python",
}
DEFAULT_RUNTIME = "node"


def validate_exec(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "command", "exec")
    if "cwd" in config and not isinstance(config["cwd"], str):
        errors.append('Exec task "cwd" must be a string')
    return errors


def render_exec(config: Mapping[str, Any], context: Context) -> tuple[str, Path]:
    command = interpolate(config_string(config, "command"), context)
    cwd = to_path(render_path(config["cwd"], context)) if config.get("cwd") else Path.cwd()
    return command, cwd


def execute_exec(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping exec task")
        return
    command, cwd = render_exec(config, context)
    logger.info("Running: %s", command)
    run_shell(command, cwd=cwd, check=True, capture=False)


def diff_exec(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    command, cwd = render_exec(config, context)
    return ["Would execute:", f"  Command: {command}", f"  Working directory: {cwd}"]


def validate_git_init(config: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    for key in ("removeExisting", "initialCommit"):
        if key in config and not isinstance(config[key], bool):
            errors.append(f'Git-init task "{key}" must be a boolean')
    if "message" in config and not isinstance(config["message"], str):
        errors.append('Git-init task "message" must be a string')
    return errors


def execute_git_init(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping git-init task")
        return
    root = Path.cwd()
    git_dir = root / ".git"
    if config.get("removeExisting") and git_dir.exists():
        shutil.rmtree(git_dir)
        logger.info("Removed existing .git directory")
    run_git(["init"], repo_root=root)
    if config.get("initialCommit"):
        message = interpolate(str(config.get("message") or DEFAULT_COMMIT_MESSAGE), context)
        run_git(["add", "."], repo_root=root)
        run_git(["commit", "-m", message], repo_root=root)
        logger.info("Created initial commit: %s", message)


def diff_git_init(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    lines: list[str] = []
    if config.get("removeExisting") and (Path.cwd() / ".git").exists():
        lines.append("Would remove existing .git directory")
    lines.append("Would initialize git repository")
    if config.get("initialCommit"):
        message = interpolate(str(config.get("message") or DEFAULT_COMMIT_MESSAGE), context)
        lines.append(f'Would create initial commit: "{message}"')
    return lines


# --------------------------------------------------------------------------
# exec-file
# --------------------------------------------------------------------------


def detect_runtime(path: Path) -> str | None:
    return EXTENSION_RUNTIMES.get(path.suffix.lower())


def validate_exec_file(config: dict[str, Any]) -> list[str]:
    errors = require_string(config, "file", "exec-file")
    file = config.get("file")
    if isinstance(file, str) and file.startswith(("http://", "https://")):
        errors.append('Exec-file task "file" must be a local path')
    runtime = config.get("runtime")
    if runtime is not None and runtime not in RUNTIME_COMMANDS:
        errors.append(f'Exec-file task "runtime" must be one of {", ".join(RUNTIME_COMMANDS)} (got "{runtime}")')
    args = config.get("args")
    if args is not None and (not isinstance(args, list) or not all(isinstance(arg, str) for arg in args)):
        errors.append('Exec-file task "args" must be an array of strings')
    parameters = config.get("parameters")
    if parameters is not None and (
        not isinstance(parameters, dict) or not all(isinstance(value, str) for value in parameters.values())
    ):
        errors.append('Exec-file task "parameters" must map names to strings')
    if "cwd" in config and not isinstance(config["cwd"], str):
        errors.append('Exec-file task "cwd" must be a string')
    return errors


@dataclass(frozen=True)
class ScriptRun:
    script: Path
    runtime: str
    args: tuple[str, ...]
    cwd: Path
    parameters: dict[str, str]

    @property
    def argv(self) -> list[str]:
        return [*RUNTIME_COMMANDS[self.runtime], str(self.script), *self.args]


def render_exec_file(config: Mapping[str, Any], context: Context, task: TaskDefinition | None) -> ScriptRun:
    """Script path (relative to the declaring configuration), runtime, argv and environment additions."""
    script = Path(interpolate(config_string(config, "file"), context)).expanduser()
    if not script.is_absolute():
        base = task.base_dir if task is not None and task.base_dir is not None else Path.cwd()
        script = base / script
    runtime = config.get("runtime") or detect_runtime(script)
    if runtime is None:
        logger.warning("Could not detect runtime from %s, defaulting to %s", script.name, DEFAULT_RUNTIME)
        runtime = DEFAULT_RUNTIME
    args = tuple(interpolate(arg, context) for arg in config.get("args") or [])
    parameters = {name: interpolate(value, context) for name, value in (config.get("parameters") or {}).items()}
    cwd = to_path(render_path(config["cwd"], context)) if config.get("cwd") else Path.cwd()
    return ScriptRun(
        script=script,
        runtime=runtime,
        args=args,
        cwd=cwd,
        parameters=parameters,
    )


def execute_exec_file(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> None:
    if not condition_met(config, context):
        logger.info("Condition not met, skipping exec-file task")
        return
    run = render_exec_file(config, context, task)
    if not run.script.is_file():
        raise PluginConfigurationError(f"Script file not found: {run.script}")
    logger.info("Running script: %s", " ".join(run.argv))
    run_command(run.argv, cwd=run.cwd, check=True, env={**os.environ, **run.parameters}, capture=False)


def diff_exec_file(config: dict[str, Any], context: Context, task: TaskDefinition | None = None) -> list[str]:
    if not condition_met(config, context):
        return skipped_preview()
    run = render_exec_file(config, context, task)
    lines = ["Would execute script:", f"  File: {run.script}", f"  Runtime: {run.runtime}"]
    if run.args:
        lines.append(f"  Arguments: {' '.join(run.args)}")
    if run.parameters:
        lines.append(f"  Parameters: {', '.join(sorted(run.parameters))}")
    lines.append(f"  Working directory: {run.cwd}")
    if not run.script.is_file():
        lines.append(f"  Script file not found: {run.script}")
    return lines
