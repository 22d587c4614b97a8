"""Per-project settings from ``.scaffoldx/settings.yaml`` plus environment overrides."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from scaffoldx.errors import SettingsError
from scaffoldx.process import DEFAULT_EXEC_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_TASKS_FILE = "scaffoldx.json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

ENV_TASKS_FILE = "SCAFFOLDX_TASKS_FILE"
ENV_EXEC_TIMEOUT = "SCAFFOLDX_EXEC_TIMEOUT"
ENV_LOG_LEVEL = "SCAFFOLDX_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    tasks_file: str = DEFAULT_TASKS_FILE
    exec_timeout: float = DEFAULT_EXEC_TIMEOUT
    plugins: tuple[str, ...] = ()
    log_level: str = "WARNING"
    path: Path | None = None


def settings_path_for(root: Path) -> Path:
    return root.resolve() / ".scaffoldx" / "settings.yaml"


def _timeout(value: Any, where: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{where}: exec_timeout must be a number, got `{value}`") from exc
    if timeout <= 0:
        raise SettingsError(f"{where}: exec_timeout must be positive, got `{value}`")
    return timeout


def _log_level(value: Any, where: str) -> str:
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise SettingsError(f"{where}: log_level must be one of {', '.join(LOG_LEVELS)}, got `{value}`")
    return level


def load_settings(root: Path, environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings for the project at ``root``; a missing file means defaults."""
    environ = os.environ if environ is None else environ
    path = settings_path_for(root)
    raw: dict[str, Any] = {}
    if path.exists():
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise SettingsError(f"settings.yaml parse error: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise SettingsError("settings.yaml parse error: expected mapping at top level")
        raw = loaded or {}
        logger.debug("Loaded settings from %s", path)

    where = str(path)
    tasks_file = raw.get("tasks_file", DEFAULT_TASKS_FILE)
    if not isinstance(tasks_file, str) or not tasks_file:
        raise SettingsError(f"{where}: tasks_file must be a non-empty string")
    plugins = raw.get("plugins") or []
    if not isinstance(plugins, list) or not all(isinstance(item, str) for item in plugins):
        raise SettingsError(f"{where}: plugins must be a list of module names")
    exec_timeout = _timeout(raw.get("exec_timeout", DEFAULT_EXEC_TIMEOUT), where)
    log_level = _log_level(raw.get("log_level", "WARNING"), where)

    if environ.get(ENV_TASKS_FILE):
        tasks_file = environ[ENV_TASKS_FILE]
    if environ.get(ENV_EXEC_TIMEOUT):
        exec_timeout = _timeout(environ[ENV_EXEC_TIMEOUT], ENV_EXEC_TIMEOUT)
    if environ.get(ENV_LOG_LEVEL):
        log_level = _log_level(environ[ENV_LOG_LEVEL], ENV_LOG_LEVEL)

    return Settings(
        tasks_file=tasks_file,
        exec_timeout=exec_timeout,
        plugins=tuple(plugins),
        log_level=log_level,
        path=path if path.exists() else None,
    )
