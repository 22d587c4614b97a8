"""End-to-end runs through Scaffolder against a temporary target directory."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from scaffoldx.engine import RunOptions, RunResult, Scaffolder
from scaffoldx.errors import PromptError, TaskExecutionError, TaskValidationError
from scaffoldx.state import load_state


def _run(path: Path, target: Path, scaffolder: Scaffolder | None = None, **options) -> RunResult:
    options.setdefault("assume_yes", True)
    options.setdefault("interactive", False)
    run_options = RunOptions(config_path=path, target=target, entry_points=False, **options)
    return asyncio.run((scaffolder or Scaffolder()).run(run_options))


def _files(root: Path) -> dict[str, str]:
    return {
        str(path.relative_to(root)): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


NODE_APP = {
    "name": "node-app",
    "variables": [
        {"id": "license", "value": "MIT"},
        {
            "id": "testCommand",
            "value": {"type": "conditional", "condition": "useJest === true", "ifTrue": "jest", "ifFalse": "node --test"},
        },
    ],
    "prompts": [
        {"id": "projectName", "type": "input", "message": "Project name?", "default": "demo", "required": True},
        {"id": "useJest", "type": "confirm", "message": "Use Jest?", "default": False},
    ],
    "tasks": [
        {
            "id": "package",
            "name": "Write package.json",
            "type": "write",
            "config": {"file": "package.json", "template": '{"name": "{{projectName}}"}'},
        },
        {
            "id": "scripts",
            "name": "Add scripts",
            "type": "update-json",
            "dependencies": ["package"],
            "config": {"file": "package.json", "updates": {"license": "{{license}}", "scripts.test": "{{testCommand}}"}},
        },
        {"id": "src", "name": "Source dir", "type": "mkdir", "config": {"path": "src"}},
    ],
}


def test_full_run_writes_files_and_state(write_config, tmp_path: Path) -> None:
    path = write_config("node.json", NODE_APP)
    target = tmp_path / "out"

    result = _run(path, target, answers={"useJest": "yes"})

    assert result.completed == ["package", "scripts", "src"]
    assert result.context["testCommand"] == "jest"
    assert json.loads((target / "package.json").read_text(encoding="utf-8")) == {
        "name": "demo",
        "license": "MIT",
        "scripts": {"test": "jest"},
    }
    assert (target / "src").is_dir()
    state = load_state(target)
    assert state is not None
    assert (state.config, state.completed_tasks) == ("node-app", ("package", "scripts", "src"))


def test_dry_run_leaves_target_untouched(write_config, tmp_path: Path) -> None:
    path = write_config("node.json", NODE_APP)
    target = tmp_path / "out"
    target.mkdir()
    (target / "package.json").write_text('{"name": "old"}\n', encoding="utf-8")
    before = _files(target)

    result = _run(path, target, dry_run=True)

    assert _files(target) == before
    assert not (target / "src").exists()
    assert result.dry_run
    assert result.completed == []
    assert [p.task_id for p in result.report.previews] == ["package", "scripts", "src"]
    assert result.report.previews[2].lines == ("+ Would create directory: src",)


def test_required_task_failure_stops_the_run(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "tasks": [
                {"id": "first", "name": "First", "type": "mkdir", "config": {"path": "a"}},
                {"id": "boom", "name": "Boom", "type": "exec", "config": {"command": "exit 4"}},
                {"id": "never", "name": "Never", "type": "mkdir", "config": {"path": "b"}},
            ],
        },
    )
    target = tmp_path / "out"

    with pytest.raises(TaskExecutionError) as excinfo:
        _run(path, target)

    assert excinfo.value.task_id == "boom"
    assert excinfo.value.completed_task_ids == ["first"]
    assert (target / "a").is_dir()
    assert not (target / "b").exists()
    assert load_state(target) is None


def test_optional_task_failure_is_recorded(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "tasks": [
                {"id": "maybe", "name": "Maybe", "type": "exec", "required": False, "config": {"command": "exit 1"}},
                {"id": "after", "name": "After", "type": "mkdir", "config": {"path": "after"}},
            ],
        },
    )
    result = _run(path, tmp_path / "out")
    assert result.failed == ["maybe"]
    assert result.completed == ["after"]


def test_disabled_configuration_does_nothing(write_config, tmp_path: Path) -> None:
    data = {"name": "docker", "enabled": "useDocker", "tasks": [{"id": "d", "name": "D", "type": "mkdir", "config": {"path": "d"}}]}
    path = write_config("docker.json", data)
    target = tmp_path / "out"

    result = _run(path, target, answers={"useDocker": False})

    assert result.enabled is False
    assert result.plan is None
    assert not target.exists()


def test_configuration_enabled_by_prompt_answer(write_config, tmp_path: Path) -> None:
    data = {
        "name": "docker",
        "enabled": "useDocker",
        "prompts": [{"id": "useDocker", "type": "confirm", "message": "Docker?", "default": False}],
        "tasks": [{"id": "d", "name": "D", "type": "mkdir", "config": {"path": "d"}}],
    }
    path = write_config("docker.json", data)

    off = _run(path, tmp_path / "off")
    on = _run(path, tmp_path / "on", answers={"useDocker": "y"})

    assert off.enabled is False
    assert not (tmp_path / "off" / "d").exists()
    assert on.completed == ["d"]


def test_task_enabled_by_answer_and_dependents_still_run(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "prompts": [{"id": "useDocker", "type": "confirm", "message": "Docker?", "default": False}],
            "tasks": [
                {"id": "docker", "name": "Docker", "type": "mkdir", "enabled": "useDocker", "config": {"path": "docker"}},
                {"id": "never", "name": "Never", "type": "mkdir", "enabled": False, "config": {"path": "never"}},
                {"id": "app", "name": "App", "type": "mkdir", "dependencies": ["never"], "config": {"path": "app"}},
            ],
        },
    )

    result = _run(path, tmp_path / "out")

    assert result.plan.task_ids == ["docker", "app"]
    assert result.skipped == ["docker"]
    assert result.completed == ["app"]


def test_task_scoped_prompts_and_variables(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "variables": [{"id": "root", "value": "pkg"}],
            "tasks": [
                {
                    "id": "module",
                    "name": "Module",
                    "type": "write",
                    "prompts": [{"id": "moduleName", "type": "input", "message": "Module?", "default": "core"}],
                    "variables": [{"id": "dir", "value": "{{root}}/{{moduleName}}"}],
                    "config": {"file": "{{dir}}/__init__.py", "template": "# {{moduleName}}\n"},
                },
                {"id": "other", "name": "Other", "type": "write", "config": {"file": "other.txt", "template": "[{{dir}}]"}},
            ],
        },
    )
    target = tmp_path / "out"

    result = _run(path, target, answers={"moduleName": "api"})

    assert (target / "pkg" / "api" / "__init__.py").read_text(encoding="utf-8") == "# api\n"
    assert (target / "other.txt").read_text(encoding="utf-8") == "[]"
    assert "dir" not in result.context


def test_answers_for_task_prompts_stay_inside_their_task(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "tasks": [
                {
                    "id": "module",
                    "name": "Module",
                    "type": "write",
                    "prompts": [{"id": "moduleName", "type": "input", "message": "Module?"}],
                    "config": {"file": "module.txt", "template": "{{moduleName}}"},
                },
                {"id": "other", "name": "Other", "type": "write", "config": {"file": "other.txt", "template": "[{{moduleName}}]"}},
            ],
        },
    )
    target = tmp_path / "out"

    result = _run(path, target, answers={"moduleName": "api", "extra": "kept"})

    assert (target / "module.txt").read_text(encoding="utf-8") == "api"
    assert (target / "other.txt").read_text(encoding="utf-8") == "[]"
    assert "moduleName" not in result.context
    assert result.context["extra"] == "kept"


def test_validation_happens_before_the_target_is_touched(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "prompts": [{"id": "p", "type": "select", "message": "Pick"}],
            "tasks": [
                {"id": "w", "name": "W", "type": "write", "config": {"template": "x"}},
                {"id": "x", "name": "X", "type": "teleport", "config": {}},
            ],
        },
    )
    target = tmp_path / "out"

    with pytest.raises(TaskValidationError) as excinfo:
        _run(path, target)

    assert len(excinfo.value.errors) == 3
    assert not target.exists()


def test_missing_required_answer(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {"name": "conf", "prompts": [{"id": "token", "type": "password", "message": "Token?", "required": True}]},
    )
    with pytest.raises(PromptError, match="token"):
        _run(path, tmp_path / "out")


def test_hooks_fire_in_order(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "tasks": [
                {"id": "ok", "name": "Ok", "type": "mkdir", "config": {"path": "ok"}},
                {"id": "bad", "name": "Bad", "type": "exec", "required": False, "config": {"command": "exit 2"}},
            ],
        },
    )
    events: list[str] = []
    scaffolder = Scaffolder()
    scaffolder.registry.register_hooks(
        before_all=lambda tasks, ctx: events.append(f"before_all:{len(tasks)}"),
        before_task=lambda task, ctx: events.append(f"before:{task.id}"),
        after_task=lambda task, ctx: events.append(f"after:{task.id}"),
        on_error=lambda task, exc: events.append(f"error:{task.id}"),
        after_all=lambda completed, ctx: events.append(f"after_all:{','.join(completed)}"),
    )

    _run(path, tmp_path / "out", scaffolder=scaffolder)

    assert events == ["before_all:2", "before:ok", "after:ok", "before:bad", "error:bad", "after_all:ok"]


def test_state_can_be_disabled(write_config, tmp_path: Path) -> None:
    path = write_config("conf.json", {"name": "conf", "tasks": [{"id": "a", "name": "A", "type": "mkdir", "config": {"path": "a"}}]})
    _run(path, tmp_path / "out", save_state=False)
    assert load_state(tmp_path / "out") is None


def test_result_to_dict(write_config, tmp_path: Path) -> None:
    path = write_config("conf.json", {"name": "conf", "tasks": [{"id": "a", "name": "A", "type": "mkdir", "config": {"path": "a"}}]})
    payload = _run(path, tmp_path / "out", dry_run=True).to_dict()
    assert payload["config"] == "conf"
    assert payload["plan"]["tasks"][0]["id"] == "a"
    assert payload["preview"]["tasks"][0]["lines"] == ["+ Would create directory: a"]


def test_dependency_on_task_of_disabled_ancestor_is_satisfied(write_config, tmp_path: Path) -> None:
    write_config(
        "base.json",
        {"name": "base", "enabled": False, "tasks": [{"id": "t1", "name": "T1", "type": "mkdir", "config": {"path": "t1"}}]},
    )
    child = write_config(
        "child.json",
        {
            "name": "child",
            "extends": "base.json",
            "tasks": [{"id": "t2", "name": "T2", "type": "mkdir", "dependencies": ["t1"], "config": {"path": "t2"}}],
        },
    )
    target = tmp_path / "out"

    result = _run(child, target)

    assert result.plan.task_ids == ["t2"]
    assert result.completed == ["t2"]
    assert not (target / "t1").exists()


def test_declared_transformers_shape_variables_and_answers(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {
            "name": "conf",
            "transformers": [
                {"id": "unscope", "type": "regex", "config": {"pattern": "^@[^/]+/", "replacement": ""}},
                {"id": "dirname", "type": "chain", "config": {"transformers": ["unscope", "snakecase"]}},
            ],
            "prompts": [
                {"id": "packageName", "type": "input", "message": "Package?", "transformers": ["trim", "lowercase"]},
            ],
            "variables": [
                {
                    "id": "moduleDir",
                    "value": {"type": "conditional", "condition": "true", "ifTrue": "{{packageName}}"},
                    "transformers": ["dirname"],
                }
            ],
            "tasks": [{"id": "pkg", "name": "Package", "type": "mkdir", "config": {"path": "{{moduleDir}}"}}],
        },
    )
    target = tmp_path / "out"

    result = _run(path, target, answers={"packageName": "  @Acme/Data-Tools "})

    assert result.context["packageName"] == "@acme/data-tools"
    assert result.context["moduleDir"] == "data_tools"
    assert (target / "data_tools").is_dir()


def test_unknown_transformer_fails_validation(write_config, tmp_path: Path) -> None:
    path = write_config(
        "conf.json",
        {"name": "conf", "variables": [{"id": "slug", "value": "x", "transformers": ["nonexistent"]}]},
    )
    target = tmp_path / "out"

    with pytest.raises(TaskValidationError) as excinfo:
        _run(path, target)

    assert excinfo.value.errors == ['Variable "slug": Transformer "nonexistent" not found']
    assert not target.exists()
