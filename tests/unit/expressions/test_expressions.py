"""Unit tests for the restricted expression evaluator."""

from __future__ import annotations

import logging

import pytest

from scaffoldx.expressions import (
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    UnresolvedIdentifierError,
    evaluate_condition,
    evaluate_expression,
    is_truthy,
    to_display_string,
)


def test_logical_and_of_booleans() -> None:
    assert evaluate_condition("a && b", {"a": True, "b": False}) is False
    assert evaluate_condition("a || b", {"a": False, "b": True}) is True


def test_array_includes() -> None:
    assert evaluate_condition('x.includes("y")', {"x": ["y", "z"]}) is True
    assert evaluate_condition('x.includes("q")', {"x": ["y", "z"]}) is False


def test_syntax_error_is_false_in_strict_mode(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="scaffoldx.expressions"):
        assert evaluate_condition("bad syntax {{", {}) is False
    assert "Failed to evaluate condition: bad syntax {{" in caplog.text


def test_silent_mode_suppresses_logging(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="scaffoldx.expressions"):
        assert evaluate_condition("missing === 1", {}, silent=True) is False
    assert caplog.text == ""


def test_lazy_mode_treats_unresolved_identifier_as_true() -> None:
    assert evaluate_condition("gitUser === 'me'", {}, lazy=True) is True
    assert evaluate_condition("gitUser === 'me'", {}) is False


def test_lazy_mode_does_not_mask_syntax_errors() -> None:
    assert evaluate_condition("a ===", {}, lazy=True, silent=True) is False


def test_lazy_mode_does_not_mask_runtime_errors() -> None:
    assert evaluate_condition("a.b.c", {"a": None}, lazy=True, silent=True) is False


@pytest.mark.parametrize(
    ("expression", "expected"),
    [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("10 / 4", 2.5),
        ("7 % 4", 3),
        ("'a' + 1", "a1"),
        ("-x", -3),
        ("!flag", False),
        ("x > 2 ? 'big' : 'small'", "big"),
        ("name.length", 5),
        ("name.toUpperCase()", "ALICE"),
        ("name.startsWith('al')", True),
        ("name.endsWith('ce')", True),
        ("'  pad '.trim()", "pad"),
        ("tags.join('-')", "a-b"),
        ("'a,b'.split(',')", ["a", "b"]),
        ("tags.indexOf('b')", 1),
        ("nested.inner.value", 42),
        ("nested['inner'].value", 42),
        ("tags[0]", "a"),
        ("missingKey ?? 'fallback'", "fallback"),
        ("typeof x", "number"),
        ("typeof nope", "undefined"),
        ("null == undefined", True),
        ("'3' == x", True),
        ("'3' === x", False),
        ("x !== 3", False),
        ("[1, 2].includes(2)", True),
    ],
)
def test_expression_values(expression: str, expected: object) -> None:
    context = {
        "x": 3,
        "flag": True,
        "name": "alice",
        "tags": ["a", "b"],
        "nested": {"inner": {"value": 42}},
        "missingKey": None,
    }
    assert evaluate_expression(expression, context) == expected


def test_optional_chaining_short_circuits() -> None:
    assert evaluate_expression("a?.b", {"a": None}) is None


def test_missing_mapping_key_is_undefined() -> None:
    assert evaluate_expression("cfg.absent", {"cfg": {}}) is None


def test_unresolved_identifier_raises() -> None:
    with pytest.raises(UnresolvedIdentifierError):
        evaluate_expression("nope", {})


def test_member_of_null_raises() -> None:
    with pytest.raises(ExpressionEvaluationError):
        evaluate_expression("a.b", {"a": None})


def test_disallowed_method_raises() -> None:
    with pytest.raises(ExpressionEvaluationError, match="not allowed"):
        evaluate_expression("name.constructor()", {"name": "x"})


@pytest.mark.parametrize("expression", ["a =", "{a: 1}", "'unterminated", "a b", ""])
def test_syntax_errors(expression: str) -> None:
    with pytest.raises(ExpressionSyntaxError):
        evaluate_expression(expression, {"a": 1, "b": 2})


def test_truthiness_rules() -> None:
    assert is_truthy([]) is True
    assert is_truthy({}) is True
    assert is_truthy("") is False
    assert is_truthy(0) is False
    assert is_truthy(float("nan")) is False


def test_display_string_conventions() -> None:
    assert to_display_string(True) == "true"
    assert to_display_string(3.0) == "3"
    assert to_display_string(["a", 1]) == "a,1"
    assert to_display_string(None) == ""


@pytest.mark.parametrize(
    ("expression", "error"),
    [
        ("1" + "0" * 5000 + " > 1", ExpressionSyntaxError),
        ("(" * 2000 + "1" + ")" * 2000, ExpressionSyntaxError),
        ("1" + "0" * 400 + " / 3 > 1", ExpressionEvaluationError),
        ("1" + "0" * 400 + " % 7", ExpressionEvaluationError),
    ],
)
def test_oversized_expressions_raise_expression_errors(expression: str, error: type) -> None:
    with pytest.raises(error):
        evaluate_expression(expression, {})
    assert evaluate_condition(expression, {}, silent=True) is False
    assert evaluate_condition(expression, {}, lazy=True, silent=True) is False
