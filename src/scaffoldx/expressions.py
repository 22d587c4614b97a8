"""Restricted expression language used by conditions and computed defaults.

Expressions use a familiar infix syntax (``useTs && packageManager === "pnpm"``) but
are parsed and interpreted here; nothing is handed to ``eval``. Supported:

- literals: numbers, single/double/backtick strings, ``true``, ``false``,
  ``null``, ``undefined``, array literals
- identifiers resolved against the context mapping
- member access (``a.b``, ``a?.b``, ``a[0]``) and ``.length``
- a fixed set of string/array methods (see ``ALLOWED_METHODS``)
- ``!``, unary ``-``/``+``, ``typeof``
- arithmetic, comparison, ``==``/``===`` and their negations
- ``&&``, ``||``, ``??`` and the ternary operator
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset(
    {
        "includes",
        "startsWith",
        "endsWith",
        "toLowerCase",
        "toUpperCase",
        "trim",
        "indexOf",
        "join",
        "split",
    }
)

KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}


class ExpressionError(Exception):
    """Base class for expression failures; never escapes evaluate_condition."""


class ExpressionSyntaxError(ExpressionError):
    pass


class UnresolvedIdentifierError(ExpressionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is not defined")
        self.name = name


class ExpressionEvaluationError(ExpressionError):
    pass


# --------------------------------------------------------------------------
# Tokenizer
# --------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str  # num | str | ident | op | eof
    value: Any
    pos: int


_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_OPERATORS = (
    "===",
    "!==",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "??",
    "?.",
    "<",
    ">",
    "+",
    "-",
    "*",
    "/",
    "%",
    "!",
    "(",
    ")",
    "[",
    "]",
    ".",
    ",",
    "?",
    ":",
)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "b": "\b", "f": "\f", "v": "\v"}


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    length = len(source)
    while i < length:
        ch = source[i]
        if ch.isspace():
            i += 1
            continue
        if ch.isdigit() or (ch == "." and i + 1 < length and source[i + 1].isdigit()):
            match = _NUMBER_RE.match(source, i)
            assert match is not None
            text = match.group(0)
            value: Any = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(Token("num", value, i))
            i = match.end()
            continue
        if ch in "\"'`":
            text, i = _read_string(source, i)
            tokens.append(Token("str", text, i))
            continue
        match = _IDENT_RE.match(source, i)
        if match:
            tokens.append(Token("ident", match.group(0), i))
            i = match.end()
            continue
        for op in _OPERATORS:
            if source.startswith(op, i):
                # `a?.5:1` is a ternary, not optional chaining
                if op == "?." and i + 2 < length and source[i + 2].isdigit():
                    continue
                tokens.append(Token("op", op, i))
                i += len(op)
                break
        else:
            raise ExpressionSyntaxError(f"Unexpected character {ch!r} at position {i}")
    tokens.append(Token("eof", None, length))
    return tokens


def _read_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    i = start + 1
    out: list[str] = []
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            if i + 1 >= len(source):
                break
            nxt = source[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(out), i + 1
        if quote == "`" and ch == "$" and source.startswith("${", i):
            raise ExpressionSyntaxError("Template literal substitutions are not supported")
        out.append(ch)
        i += 1
    raise ExpressionSyntaxError(f"Unterminated string starting at position {start}")


# --------------------------------------------------------------------------
# Parser (precedence climbing, recursive descent)
# --------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class ArrayLiteral:
    items: tuple[Any, ...]


@dataclass(frozen=True)
class Member:
    target: Any
    prop: Any  # node for computed access, str otherwise
    computed: bool
    optional: bool


@dataclass(frozen=True)
class Call:
    target: Member
    args: tuple[Any, ...]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Logical:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Conditional:
    test: Any
    consequent: Any
    alternate: Any


_BINARY_PRECEDENCE = {
    "||": 1,
    "??": 1,
    "&&": 2,
    "==": 3,
    "!=": 3,
    "===": 3,
    "!==": 3,
    "<": 4,
    ">": 4,
    "<=": 4,
    ">=": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "%": 6,
}
_LOGICAL = {"||", "??", "&&"}


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def at_op(self, *ops: str) -> bool:
        return self.current.kind == "op" and self.current.value in ops

    def expect_op(self, op: str) -> None:
        if not self.at_op(op):
            raise ExpressionSyntaxError(
                f"Expected {op!r} at position {self.current.pos}, found {self._describe(self.current)}"
            )
        self.advance()

    @staticmethod
    def _describe(token: Token) -> str:
        return "end of expression" if token.kind == "eof" else repr(token.value)

    def parse(self) -> Any:
        if self.current.kind == "eof":
            raise ExpressionSyntaxError("Empty expression")
        node = self.parse_conditional()
        if self.current.kind != "eof":
            raise ExpressionSyntaxError(
                f"Unexpected token {self._describe(self.current)} at position {self.current.pos}"
            )
        return node

    def parse_conditional(self) -> Any:
        test = self.parse_binary(1)
        if self.at_op("?"):
            self.advance()
            consequent = self.parse_conditional()
            self.expect_op(":")
            alternate = self.parse_conditional()
            return Conditional(test, consequent, alternate)
        return test

    def parse_binary(self, min_precedence: int) -> Any:
        left = self.parse_unary()
        while self.current.kind == "op" and self.current.value in _BINARY_PRECEDENCE:
            op = self.current.value
            precedence = _BINARY_PRECEDENCE[op]
            if precedence < min_precedence:
                break
            self.advance()
            right = self.parse_binary(precedence + 1)
            left = Logical(op, left, right) if op in _LOGICAL else Binary(op, left, right)
        return left

    def parse_unary(self) -> Any:
        if self.at_op("!", "-", "+"):
            op = self.advance().value
            return Unary(op, self.parse_unary())
        if self.current.kind == "ident" and self.current.value == "typeof":
            self.advance()
            return Unary("typeof", self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Any:
        node = self.parse_primary()
        while True:
            if self.at_op(".", "?."):
                optional = self.advance().value == "?."
                if optional and self.at_op("["):
                    self.advance()
                    prop = self.parse_conditional()
                    self.expect_op("]")
                    node = Member(node, prop, computed=True, optional=True)
                    continue
                if self.current.kind != "ident":
                    raise ExpressionSyntaxError(f"Expected property name at position {self.current.pos}")
                node = Member(node, self.advance().value, computed=False, optional=optional)
            elif self.at_op("["):
                self.advance()
                prop = self.parse_conditional()
                self.expect_op("]")
                node = Member(node, prop, computed=True, optional=False)
            elif self.at_op("("):
                if not isinstance(node, Member) or node.computed:
                    raise ExpressionSyntaxError("Only method calls on values are supported")
                self.advance()
                node = Call(node, self.parse_arguments(")"))
            else:
                return node

    def parse_arguments(self, closing: str) -> tuple[Any, ...]:
        args: list[Any] = []
        while not self.at_op(closing):
            args.append(self.parse_conditional())
            if not self.at_op(closing):
                self.expect_op(",")
        self.advance()
        return tuple(args)

    def parse_primary(self) -> Any:
        token = self.current
        if token.kind in ("num", "str"):
            self.advance()
            return Literal(token.value)
        if token.kind == "ident":
            self.advance()
            if token.value in KEYWORDS:
                return Literal(KEYWORDS[token.value])
            return Identifier(token.value)
        if self.at_op("("):
            self.advance()
            node = self.parse_conditional()
            self.expect_op(")")
            return node
        if self.at_op("["):
            self.advance()
            return ArrayLiteral(self.parse_arguments("]"))
        raise ExpressionSyntaxError(
            f"Unexpected token {self._describe(token)} at position {token.pos}"
        )


def parse(expression: str) -> Any:
    """Parse ``expression`` into an AST, raising ExpressionSyntaxError."""
    try:
        return _Parser(tokenize(expression)).parse()
    except (ValueError, RecursionError) as exc:
        # oversized integer literals and runaway nesting
        raise ExpressionSyntaxError(f"Expression cannot be parsed: {type(exc).__name__}") from exc


# --------------------------------------------------------------------------
# Value semantics
# --------------------------------------------------------------------------


def is_truthy(value: Any) -> bool:
    """Expression truthiness: empty containers are truthy, NaN is not."""
    if value is None or value is False:
        return False
    if value is True:
        return True
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _format_number(value: float | int) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
    return str(value)


def to_display_string(value: Any) -> str:
    """String conversion for display (``true``, ``null``, ``1,2``)."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (int, float)):
        return _format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(to_display_string(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def _as_operand_string(value: Any) -> str:
    if value is None:
        return "null"
    return to_display_string(value)


def to_number(value: Any) -> float | int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    if isinstance(value, (list, tuple)) and len(value) <= 1:
        return to_number(value[0]) if value else 0
    return math.nan


def _type_name(value: Any) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    left_type, right_type = _type_name(left), _type_name(right)
    if left_type == right_type:
        return strict_equals(left, right)
    if left_type == "object":
        return loose_equals(to_display_string(left), right)
    if right_type == "object":
        return loose_equals(left, to_display_string(right))
    return to_number(left) == to_number(right)


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        a: Any = left
        b: Any = right
    else:
        a, b = to_number(left), to_number(right)
    if op == "<":
        return bool(a < b)
    if op == ">":
        return bool(a > b)
    if op == "<=":
        return bool(a <= b)
    return bool(a >= b)


def _normalize_number(value: float) -> float | int:
    if isinstance(value, float) and value.is_integer() and abs(value) < 2**53:
        return int(value)
    return value


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+":
        if isinstance(left, (str, list, tuple, dict)) or isinstance(right, (str, list, tuple, dict)):
            return _as_operand_string(left) + _as_operand_string(right)
        return to_number(left) + to_number(right)
    a, b = to_number(left), to_number(right)
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if math.isnan(a) or math.isnan(b):
        return math.nan
    if op == "/":
        if b == 0:
            if a == 0:
                return math.nan
            return math.copysign(math.inf, a) * math.copysign(1, b)
        return _normalize_number(a / b)
    # %
    if b == 0 or math.isinf(a):
        return math.nan
    return _normalize_number(math.fmod(a, b))


def _call_method(receiver: Any, name: str, args: list[Any]) -> Any:
    if name not in ALLOWED_METHODS:
        raise ExpressionEvaluationError(f"Method {name}() is not allowed")
    if isinstance(receiver, str):
        if name == "includes":
            return _as_operand_string(args[0] if args else None) in receiver
        if name == "startsWith":
            return receiver.startswith(_as_operand_string(args[0] if args else None))
        if name == "endsWith":
            return receiver.endswith(_as_operand_string(args[0] if args else None))
        if name == "toLowerCase":
            return receiver.lower()
        if name == "toUpperCase":
            return receiver.upper()
        if name == "trim":
            return receiver.strip()
        if name == "indexOf":
            return receiver.find(_as_operand_string(args[0] if args else None))
        if name == "split":
            if not args or args[0] is None:
                return [receiver]
            separator = _as_operand_string(args[0])
            return list(receiver) if separator == "" else receiver.split(separator)
    elif isinstance(receiver, (list, tuple)):
        if name == "includes":
            needle = args[0] if args else None
            return any(_same_value_zero(item, needle) for item in receiver)
        if name == "indexOf":
            needle = args[0] if args else None
            for index, item in enumerate(receiver):
                if strict_equals(item, needle):
                    return index
            return -1
        if name == "join":
            separator = "," if not args or args[0] is None else _as_operand_string(args[0])
            return separator.join(to_display_string(item) for item in receiver)
    if receiver is None:
        raise ExpressionEvaluationError(f"Cannot read properties of undefined (reading '{name}')")
    raise ExpressionEvaluationError(f"{_type_name(receiver)}.{name} is not a function")


def _same_value_zero(left: Any, right: Any) -> bool:
    if isinstance(left, float) and isinstance(right, float) and math.isnan(left) and math.isnan(right):
        return True
    return strict_equals(left, right)


def _get_property(target: Any, prop: Any) -> Any:
    if target is None:
        raise ExpressionEvaluationError(
            f"Cannot read properties of undefined (reading '{to_display_string(prop)}')"
        )
    if prop == "length" and isinstance(target, (str, list, tuple)):
        return len(target)
    if isinstance(target, Mapping):
        return target.get(to_display_string(prop))
    if isinstance(target, (str, list, tuple)):
        index = to_number(prop)
        if isinstance(index, float) and not index.is_integer():
            return None
        if isinstance(index, (int, float)) and not math.isnan(index) and 0 <= index < len(target):
            return target[int(index)]
    return None


class _Interpreter:
    def __init__(self, context: Mapping[str, Any]) -> None:
        self.context = context

    def eval(self, node: Any) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Identifier):
            if node.name not in self.context:
                raise UnresolvedIdentifierError(node.name)
            return self.context[node.name]
        if isinstance(node, ArrayLiteral):
            return [self.eval(item) for item in node.items]
        if isinstance(node, Member):
            target = self.eval(node.target)
            if node.optional and target is None:
                return None
            prop = self.eval(node.prop) if node.computed else node.prop
            return _get_property(target, prop)
        if isinstance(node, Call):
            receiver = self.eval(node.target.target)
            if node.target.optional and receiver is None:
                return None
            args = [self.eval(arg) for arg in node.args]
            return _call_method(receiver, node.target.prop, args)
        if isinstance(node, Unary):
            if node.op == "typeof":
                try:
                    return _type_name(self.eval(node.operand))
                except UnresolvedIdentifierError:
                    return "undefined"
            value = self.eval(node.operand)
            if node.op == "!":
                return not is_truthy(value)
            if node.op == "-":
                return -to_number(value)
            return to_number(value)
        if isinstance(node, Logical):
            left = self.eval(node.left)
            if node.op == "&&":
                return self.eval(node.right) if is_truthy(left) else left
            if node.op == "||":
                return left if is_truthy(left) else self.eval(node.right)
            return self.eval(node.right) if left is None else left
        if isinstance(node, Binary):
            left = self.eval(node.left)
            right = self.eval(node.right)
            if node.op == "===":
                return strict_equals(left, right)
            if node.op == "!==":
                return not strict_equals(left, right)
            if node.op == "==":
                return loose_equals(left, right)
            if node.op == "!=":
                return not loose_equals(left, right)
            if node.op in ("<", ">", "<=", ">="):
                return _compare(node.op, left, right)
            return _arithmetic(node.op, left, right)
        if isinstance(node, Conditional):
            branch = node.consequent if is_truthy(self.eval(node.test)) else node.alternate
            return self.eval(branch)
        raise ExpressionEvaluationError(f"Unsupported expression node {type(node).__name__}")


def evaluate_expression(expression: str, context: Mapping[str, Any]) -> Any:
    """Evaluate ``expression`` against ``context`` and return the raw value.

    Raises:
        ExpressionSyntaxError: the expression does not parse.
        UnresolvedIdentifierError: an identifier is missing from ``context``.
        ExpressionEvaluationError: any runtime failure (e.g. member of null).
    """
    tree = parse(expression)
    try:
        return _Interpreter(context).eval(tree)
    except (ValueError, OverflowError, RecursionError) as exc:
        raise ExpressionEvaluationError(f"{type(exc).__name__}: {exc}") from exc


def evaluate_condition(
    expression: str,
    context: Mapping[str, Any],
    *,
    lazy: bool = False,
    silent: bool = False,
) -> bool:
    """Evaluate a condition to a boolean. Never raises.

    Strict mode (default) maps every failure to ``False`` and logs a warning
    unless ``silent``. With ``lazy=True`` an unresolved identifier means the
    value is not known yet and the result is ``True``; syntax and runtime
    errors still evaluate to ``False``.
    """
    try:
        return is_truthy(evaluate_expression(expression, context))
    except UnresolvedIdentifierError as exc:
        if lazy:
            return True
        failure: ExpressionError = exc
    except ExpressionError as exc:
        failure = exc
    if not silent:
        logger.warning("Failed to evaluate condition: %s", expression)
        logger.warning("  Error: %s", failure)
    return False
