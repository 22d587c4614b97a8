"""Unit tests for value transformers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from scaffoldx.errors import TransformerError
from scaffoldx.transformers import (
    BUILTIN_TRANSFORMERS,
    TransformerManager,
    split_words,
    validate_definitions,
    validate_references,
)
from scaffoldx.types import Configuration, PromptDefinition, TaskDefinition, TransformerDefinition, VariableDefinition


@pytest.mark.parametrize(
    ("transformer_id", "value", "expected"),
    [
        ("lowercase", "HELLO WORLD", "hello world"),
        ("uppercase", "hello world", "HELLO WORLD"),
        ("trim", "  hello world  ", "hello world"),
        ("slugify", "Hello World Project", "hello-world-project"),
        ("slugify", "My Project: (2025)!", "my-project-2025"),
        ("slugify", "hello_world test", "hello-world-test"),
        ("slugify", "hello---world", "hello-world"),
        ("capitalize", "hello world", "Hello world"),
        ("titlecase", "foo-bar_bazQux", "Foo Bar Baz Qux"),
        ("titlecase", "helloWorldExample", "Hello World Example"),
        ("camelcase", "Hello world app", "helloWorldApp"),
        ("pascalcase", "my-cool_app", "MyCoolApp"),
        ("snakecase", "myCoolApp", "my_cool_app"),
        ("kebabcase", "XMLHttpRequest", "xml-http-request"),
        ("constantcase", "my app", "MY_APP"),
        ("alphanumeric", "a-b_c 1!", "abc1"),
        ("collapse-spaces", "a   b\t c", "a b c"),
        ("remove-spaces", "a b c", "abc"),
        ("urlencode", "a b&c/d", "a%20b%26c%2Fd"),
        ("dasherize", "snake_case_name", "snake-case-name"),
        ("underscore", "kebab-case-name", "kebab_case_name"),
        ("lowercase", 42, "42"),
    ],
)
def test_builtin_transformers(transformer_id: str, value: object, expected: str) -> None:
    assert TransformerManager().execute(transformer_id, value) == expected


def test_every_builtin_is_registered() -> None:
    manager = TransformerManager()
    assert len(BUILTIN_TRANSFORMERS) == 17
    assert manager.ids() == list(BUILTIN_TRANSFORMERS)
    assert TransformerManager(builtins=False).ids() == []


def test_split_words() -> None:
    assert split_words("fooBar-baz_QUX") == ["foo", "Bar", "baz", "QUX"]
    assert split_words("  ") == []


def test_apply_runs_in_order() -> None:
    manager = TransformerManager()
    assert manager.apply(["trim", "kebabcase"], "  My App  ") == "my-app"
    assert manager.apply(["kebabcase", "uppercase"], "My App") == "MY-APP"
    assert manager.apply([], "unchanged") == "unchanged"


def test_custom_callable(caplog: pytest.LogCaptureFixture) -> None:
    manager = TransformerManager()
    manager.register("double", lambda value, context: value * 2)
    manager.register("add-prefix", lambda value, context: f"{context['prefix']}{value}")

    assert manager.execute("double", 5) == 10
    assert manager.execute("add-prefix", "world", {"prefix": "hello-"}) == "hello-world"

    with caplog.at_level(logging.WARNING, logger="scaffoldx.transformers"):
        manager.register("trim", lambda value, context: value)
    assert 'Transformer "trim" is already registered' in caplog.text


def test_failures_raise_transformer_error() -> None:
    manager = TransformerManager()
    manager.register("broken", lambda value, context: 1 / 0)

    with pytest.raises(TransformerError, match="not registered"):
        manager.execute("nonexistent", "x")
    with pytest.raises(TransformerError, match='Transformer "broken" failed') as excinfo:
        manager.execute("broken", "x")
    assert excinfo.value.reason_code == "TRANSFORMER_ERROR"


def test_declared_regex_transformer() -> None:
    manager = TransformerManager()
    manager.register_definitions(
        [
            TransformerDefinition(id="unscope", type="regex", config={"pattern": "^@[^/]+/", "replacement": ""}),
            TransformerDefinition(
                id="swap", type="regex", config={"pattern": "(?<first>\\w+)-(\\w+)", "replacement": "$2-$<first>"}
            ),
        ]
    )
    assert manager.execute("unscope", "@acme/widget") == "widget"
    assert manager.execute("swap", "left-right") == "right-left"


def test_declared_computed_transformer() -> None:
    manager = TransformerManager()
    manager.register_definition(
        TransformerDefinition(
            id="suffixed", type="computed", config={"expression": "value.toUpperCase() + '-' + suffix"}
        )
    )
    manager.register_definition(TransformerDefinition(id="bad", type="computed", config={"expression": "value.nope()"}))

    assert manager.execute("suffixed", "app", {"suffix": "x"}) == "APP-x"
    with pytest.raises(TransformerError, match="expression evaluation failed"):
        manager.execute("bad", "app")


def test_declared_chain_transformer() -> None:
    manager = TransformerManager()
    manager.register_definition(
        TransformerDefinition(id="package", type="chain", config={"transformers": ["trim", "slugify"]})
    )
    assert manager.execute("package", "  My Package!  ") == "my-package"


def test_validate_definitions() -> None:
    errors = validate_definitions(
        [
            TransformerDefinition(id="ok", type="regex", config={"pattern": "a", "replacement": "b"}),
            TransformerDefinition(id="kind", type="custom"),
            TransformerDefinition(id="pattern", type="regex", config={"pattern": "("}),
            TransformerDefinition(id="expr", type="computed", config={}),
            TransformerDefinition(id="chain", type="chain", config={"transformers": []}),
        ]
    )
    assert errors[0] == 'Transformer "kind": type must be one of regex, computed, chain (got "custom")'
    assert errors[1].startswith('Transformer "pattern": invalid pattern:')
    assert errors[2] == 'Transformer "expr": computed transformers require an "expression" string'
    assert errors[3] == 'Transformer "chain": chain transformers require a non-empty "transformers" array of ids'
    assert len(errors) == 4


def test_validate_references() -> None:
    configuration = Configuration(
        name="conf",
        path=Path("conf.json"),
        variables=(VariableDefinition(id="slug", value="x", transformers=("slugify", "declared", "missing")),),
        prompts=(PromptDefinition(id="name", type="input", message="Name?", transformers=("nope",)),),
        tasks=(
            TaskDefinition(
                id="t",
                name="T",
                type="mkdir",
                variables=(VariableDefinition(id="dir", value="x", transformers=("gone",)),),
            ),
        ),
        transformers=(TransformerDefinition(id="declared", type="chain", config={"transformers": ["trim"]}),),
    )

    assert validate_references(TransformerManager(), configuration) == [
        'Variable "slug": Transformer "missing" not found',
        'Prompt "name": Transformer "nope" not found',
        'Task "t" (T): Variable "dir": Transformer "gone" not found',
    ]
