"""Unit tests for update-json, regex-replace and replace-in-file."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from scaffoldx.plugins import PluginRegistry
from scaffoldx.tasks import content
from scaffoldx.types import TaskDefinition


def _run(registry: PluginRegistry, task_type: str, config: dict, context: dict | None = None) -> None:
    task = TaskDefinition(id="t", name="t", type=task_type, config=config)
    asyncio.run(registry.execute(task, context or {}))


def test_set_nested_creates_and_replaces_levels() -> None:
    document = {"scripts": "not-an-object", "name": "x"}
    content.set_nested(document, "scripts.test", "pytest")
    content.set_nested(document, "a.b.c", 1)
    assert document == {"scripts": {"test": "pytest"}, "name": "x", "a": {"b": {"c": 1}}}


def test_update_json_interpolates_nested_values(project: Path, registry: PluginRegistry) -> None:
    (project / "package.json").write_text(json.dumps({"name": "old", "version": "0.0.0"}), encoding="utf-8")
    _run(
        registry,
        "update-json",
        {
            "file": "package.json",
            "updates": {"name": "{{projectName}}", "keywords": ["{{projectName}}", "cli"], "private": True},
        },
        {"projectName": "demo"},
    )
    text = (project / "package.json").read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert json.loads(text) == {"name": "demo", "version": "0.0.0", "keywords": ["demo", "cli"], "private": True}


def test_update_json_rejects_non_object(project: Path, registry: PluginRegistry) -> None:
    (project / "list.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="does not contain a JSON object"):
        _run(registry, "update-json", {"file": "list.json", "updates": {"a": 1}})


def test_missing_file_fails_execution_and_preview(project: Path, registry: PluginRegistry) -> None:
    with pytest.raises(FileNotFoundError, match="File not found: absent.json"):
        _run(registry, "update-json", {"file": "absent.json", "updates": {}})
    assert content.diff_replace_in_file({"file": "absent.txt", "replacements": []}, {}) == [
        "✗ File not found: absent.txt"
    ]


@pytest.mark.parametrize(
    ("pattern", "flags", "replacement", "expected"),
    [
        ("foo", "", "bar", "bar foo FOO"),
        ("foo", "g", "bar", "bar bar FOO"),
        ("foo", "gi", "bar", "bar bar bar"),
        (r"(f)(oo)", "", "$2$1", "oof foo FOO"),
        (r"(?<word>foo)", "", "[$<word>]", "[foo] foo FOO"),
        ("foo", "", "<$&>", "<foo> foo FOO"),
        ("foo", "", "$$", "$ foo FOO"),
    ],
)
def test_regex_replace(project: Path, registry: PluginRegistry, pattern, flags, replacement, expected) -> None:
    (project / "f.txt").write_text("foo foo FOO", encoding="utf-8")
    _run(registry, "regex-replace", {"file": "f.txt", "pattern": pattern, "flags": flags, "replacement": replacement})
    assert (project / "f.txt").read_text(encoding="utf-8") == expected


def test_regex_replace_multiline_flag(project: Path, registry: PluginRegistry) -> None:
    (project / "f.txt").write_text("a=1\nb=2\n", encoding="utf-8")
    _run(registry, "regex-replace", {"file": "f.txt", "pattern": "^(\\w)=", "flags": "gm", "replacement": "$1: "})
    assert (project / "f.txt").read_text(encoding="utf-8") == "a: 1\nb: 2\n"


def test_regex_replace_interpolates_replacement(project: Path, registry: PluginRegistry) -> None:
    (project / "f.txt").write_text("name = TODO\n", encoding="utf-8")
    _run(registry, "regex-replace", {"file": "f.txt", "pattern": "TODO", "replacement": "{{name}}"}, {"name": "demo"})
    assert (project / "f.txt").read_text(encoding="utf-8") == "name = demo\n"


def test_regex_preview_without_matches(project: Path) -> None:
    (project / "f.txt").write_text("abc", encoding="utf-8")
    assert content.diff_regex_replace({"file": "f.txt", "pattern": "zzz"}, {}) == ["→ No matches found"]


def test_regex_validation() -> None:
    errors = content.validate_regex_replace({"file": "f", "pattern": "(unclosed"})
    assert len(errors) == 1
    assert errors[0].startswith("Invalid regular expression")
    assert content.validate_regex_replace({"file": "f", "pattern": "x", "flags": "q"})[0].startswith(
        "Invalid regular expression"
    )


def test_replace_in_file_first_occurrence_only(project: Path, registry: PluginRegistry) -> None:
    (project / "f.txt").write_text("x x y", encoding="utf-8")
    _run(
        registry,
        "replace-in-file",
        {"file": "f.txt", "replacements": [{"find": "x", "replace": "{{v}}"}, {"find": "y", "replace": "z"}]},
        {"v": "1"},
    )
    assert (project / "f.txt").read_text(encoding="utf-8") == "1 x z"


def test_replace_in_file_validation() -> None:
    assert content.validate_replace_in_file({"file": "f", "replacements": []}) == [
        'Replace-in-file task requires a non-empty "replacements" array'
    ]
    assert content.validate_replace_in_file({"file": "f", "replacements": [{"find": "a"}]}) == [
        'Replacement #1 must have string "find" and "replace" fields'
    ]
