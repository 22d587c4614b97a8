"""Pytest configuration and fixtures for scaffoldx tests."""
from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from scaffoldx.plugins import PluginRegistry
from scaffoldx.tasks import register_builtin_tasks


def pytest_sessionfinish(session, exitstatus):
    """Fail the session when --cov was requested but no data was collected."""
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)
    if not cov_enabled:
        return
    if not list(Path.cwd().glob(".coverage*")):
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'scaffoldx' (the package) not 'src/scaffoldx' (filesystem path).",
            returncode=1,
        )


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write a configuration document under ``tmp_path/configs`` and return its path."""

    def _write(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_path / "configs" / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def registry() -> PluginRegistry:
    reg = PluginRegistry()
    register_builtin_tasks(reg)
    return reg


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty target directory that is also the working directory."""
    root = tmp_path / "project"
    root.mkdir()
    monkeypatch.chdir(root)
    return root
