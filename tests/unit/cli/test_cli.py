"""Tests for the scaffoldx command line."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from scaffoldx import __version__
from scaffoldx.cli import cli
from scaffoldx.state import STATE_FILENAME

runner = CliRunner()

SIMPLE = {
    "name": "simple",
    "prompts": [{"id": "pkg", "type": "input", "message": "Package?", "default": "app"}],
    "tasks": [
        {"id": "src", "name": "Source", "type": "mkdir", "config": {"path": "src/{{pkg}}"}},
        {
            "id": "init",
            "name": "Init",
            "type": "write",
            "dependencies": ["src"],
            "config": {"file": "src/{{pkg}}/__init__.py", "template": "# {{pkg}}\n"},
        },
    ],
}


def _target(tmp_path: Path, data: dict | None = None) -> Path:
    target = tmp_path / "project"
    target.mkdir()
    (target / "scaffoldx.json").write_text(json.dumps(data or SIMPLE), encoding="utf-8")
    return target


def test_version() -> None:
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_run_with_answers(tmp_path: Path) -> None:
    target = _target(tmp_path)

    result = runner.invoke(cli, ["run", "--target", str(target), "--yes", "--set", "pkg=core"])

    assert result.exit_code == 0, result.output
    assert "Completed 2 task(s)" in result.output
    assert (target / "src" / "core" / "__init__.py").read_text(encoding="utf-8") == "# core\n"
    assert (target / STATE_FILENAME).exists()


def test_run_dry_run_prints_previews(tmp_path: Path) -> None:
    target = _target(tmp_path)

    result = runner.invoke(cli, ["run", "-t", str(target), "--dry-run", "-y"])

    assert result.exit_code == 0, result.output
    assert "Dry run:" in result.output
    assert "[1/2] Source (mkdir)" in result.output
    assert "Would create directory: src/app" in result.output
    assert not (target / "src").exists()
    assert not (target / STATE_FILENAME).exists()


def test_run_malformed_assignment(tmp_path: Path) -> None:
    target = _target(tmp_path)
    result = runner.invoke(cli, ["run", "-t", str(target), "-y", "--set", "novalue"])
    assert result.exit_code == 2


def test_run_missing_configuration(tmp_path: Path) -> None:
    result = runner.invoke(cli, ["run", "-t", str(tmp_path), "-y", "-c", "absent.json"])
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "not found" in result.output


def test_required_failure_exits_non_zero(tmp_path: Path) -> None:
    target = _target(
        tmp_path,
        {
            "name": "failing",
            "tasks": [
                {"id": "first", "name": "First", "type": "mkdir", "config": {"path": "a"}},
                {"id": "boom", "name": "Boom", "type": "exec", "config": {"command": "exit 3"}},
            ],
        },
    )

    result = runner.invoke(cli, ["run", "-t", str(target), "-y"])

    assert result.exit_code == 1
    assert "Completed before failure: first" in result.output
    assert not (target / STATE_FILENAME).exists()


def test_rerun_asks_for_confirmation(tmp_path: Path) -> None:
    target = _target(tmp_path)
    assert runner.invoke(cli, ["run", "-t", str(target), "-y"]).exit_code == 0
    (target / "src" / "app" / "__init__.py").write_text("edited", encoding="utf-8")

    declined = runner.invoke(cli, ["run", "-t", str(target)], input="n\n")
    assert declined.exit_code == 0
    assert "Aborted." in declined.output
    assert (target / "src" / "app" / "__init__.py").read_text(encoding="utf-8") == "edited"

    forced = runner.invoke(cli, ["run", "-t", str(target), "--force"])
    assert forced.exit_code == 0, forced.output
    assert (target / "src" / "app" / "__init__.py").read_text(encoding="utf-8") == "# app\n"


def test_validate(tmp_path: Path) -> None:
    target = _target(tmp_path)
    result = runner.invoke(cli, ["validate", "-t", str(target)])
    assert result.exit_code == 0, result.output
    assert "simple is valid" in result.output


def test_validate_reports_schema_errors(tmp_path: Path) -> None:
    target = _target(tmp_path, {"name": "Bad Name", "tasks": []})
    result = runner.invoke(cli, ["validate", "-t", str(target)])
    assert result.exit_code == 1
    assert "Schema validation failed" in result.output


def test_validate_reports_task_errors(tmp_path: Path) -> None:
    target = _target(tmp_path, {"name": "broken", "tasks": [{"id": "x", "name": "X", "type": "warp"}]})
    result = runner.invoke(cli, ["validate", "-t", str(target)])
    assert result.exit_code == 1
    assert "Unknown task type" in result.output


def test_plan_json(tmp_path: Path) -> None:
    target = _target(tmp_path)
    result = runner.invoke(cli, ["plan", "-t", str(target), "--format", "json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["config"] == "simple"
    assert [task["id"] for task in payload["tasks"]] == ["src", "init"]
    assert [task["rank"] for task in payload["tasks"]] == [0, 1]


def test_plan_text(tmp_path: Path) -> None:
    target = _target(tmp_path)
    result = runner.invoke(cli, ["plan", "-t", str(target)])
    assert result.exit_code == 0, result.output
    assert "1. src mkdir rank 0" in result.output
    assert "2. init write rank 1 after src" in result.output


def test_status(tmp_path: Path) -> None:
    target = _target(tmp_path)
    before = runner.invoke(cli, ["status", "-t", str(target)])
    assert before.exit_code == 0
    assert "Not initialised" in before.output

    runner.invoke(cli, ["run", "-t", str(target), "-y"])
    after = runner.invoke(cli, ["status", "-t", str(target), "--json"])
    assert after.exit_code == 0
    record = json.loads(after.stdout)
    assert record["config"] == "simple"
    assert record["completedTasks"] == ["src", "init"]
    assert record["version"] == __version__
