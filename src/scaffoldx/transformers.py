"""Value transformers applied to resolved variables and prompt answers.

A variable or prompt lists transformer ids under ``transformers``; once its
value is known the ids run in order, each receiving the previous result::

    {"id": "packageName", "value": "{{projectName}}", "transformers": ["trim", "kebabcase"]}

Built-ins are registered on every manager. Configurations add ``regex``,
``computed`` and ``chain`` transformers through their top-level
``transformers`` array; Python callers register any callable with
``TransformerManager.register``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any
from urllib.parse import quote

from scaffoldx.errors import TransformerError
from scaffoldx.expressions import ExpressionError, evaluate_expression, to_display_string
from scaffoldx.patterns import compile_pattern, replacement_template
from scaffoldx.types import TRANSFORMER_TYPES, Configuration, TransformerDefinition

logger = logging.getLogger(__name__)

Transformer = Callable[[Any, Mapping[str, Any]], Any]

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_SEPARATORS = re.compile(r"[\W_]+")
# unreserved characters plus the sub-delims browsers leave alone
_URL_SAFE = "-_.!~*'()"


def split_words(text: str) -> list[str]:
    """``"fooBar-baz_QUX"`` -> ``["foo", "Bar", "baz", "QUX"]``."""
    spaced = _ACRONYM_BOUNDARY.sub(r"\1 \2", _CAMEL_BOUNDARY.sub(r"\1 \2", text))
    return [word for word in _SEPARATORS.split(spaced) if word]


def slugify(text: str) -> str:
    slug = text.lower().strip()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^\w-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def camel_case(text: str) -> str:
    words = split_words(text)
    if not words:
        return ""
    return words[0].lower() + "".join(word.capitalize() for word in words[1:])


def pascal_case(text: str) -> str:
    return "".join(word.capitalize() for word in split_words(text))


def snake_case(text: str) -> str:
    return "_".join(word.lower() for word in split_words(text))


def kebab_case(text: str) -> str:
    return "-".join(word.lower() for word in split_words(text))


def constant_case(text: str) -> str:
    return "_".join(word.upper() for word in split_words(text))


def title_case(text: str) -> str:
    return " ".join(word.capitalize() for word in split_words(text))


def _text(func: Callable[[str], str]) -> Transformer:
    def transform(value: Any, context: Mapping[str, Any]) -> str:
        return func(to_display_string(value))

    return transform


BUILTIN_TRANSFORMERS: dict[str, Transformer] = {
    "lowercase": _text(str.lower),
    "uppercase": _text(str.upper),
    "trim": _text(str.strip),
    "slugify": _text(slugify),
    "capitalize": _text(lambda text: text[:1].upper() + text[1:]),
    "titlecase": _text(title_case),
    "camelcase": _text(camel_case),
    "pascalcase": _text(pascal_case),
    "snakecase": _text(snake_case),
    "kebabcase": _text(kebab_case),
    "constantcase": _text(constant_case),
    "alphanumeric": _text(lambda text: re.sub(r"[^a-zA-Z0-9]", "", text)),
    "collapse-spaces": _text(lambda text: re.sub(r"\s+", " ", text)),
    "remove-spaces": _text(lambda text: re.sub(r"\s", "", text)),
    "urlencode": _text(lambda text: quote(text, safe=_URL_SAFE)),
    "dasherize": _text(kebab_case),
    "underscore": _text(snake_case),
}


def validate_definitions(definitions: Sequence[TransformerDefinition]) -> list[str]:
    """Structural checks for configuration-declared transformers."""
    errors: list[str] = []
    for definition in definitions:
        prefix = f'Transformer "{definition.id}": '
        config = definition.config
        if definition.type not in TRANSFORMER_TYPES:
            errors.append(f'{prefix}type must be one of {", ".join(TRANSFORMER_TYPES)} (got "{definition.type}")')
        elif definition.type == "regex":
            if not isinstance(config.get("pattern"), str) or not config["pattern"]:
                errors.append(f'{prefix}regex transformers require a "pattern" string')
            else:
                try:
                    compile_pattern(config["pattern"], str(config.get("flags", "")))
                except (re.error, ValueError) as exc:
                    errors.append(f"{prefix}invalid pattern: {exc}")
            if "replacement" in config and not isinstance(config["replacement"], str):
                errors.append(f'{prefix}"replacement" must be a string')
        elif definition.type == "computed":
            if not isinstance(config.get("expression"), str) or not config["expression"].strip():
                errors.append(f'{prefix}computed transformers require an "expression" string')
        else:
            steps = config.get("transformers")
            if not isinstance(steps, list) or not steps or not all(isinstance(step, str) for step in steps):
                errors.append(f'{prefix}chain transformers require a non-empty "transformers" array of ids')
    return errors


class TransformerManager:
    """Registry of transformers by id; the last registration for an id wins."""

    def __init__(self, *, builtins: bool = True) -> None:
        self._transformers: dict[str, Transformer] = {}
        if builtins:
            self._transformers.update(BUILTIN_TRANSFORMERS)

    def register(self, transformer_id: str, transformer: Transformer) -> None:
        if transformer_id in self._transformers:
            logger.warning('Transformer "%s" is already registered. Overwriting.', transformer_id)
        self._transformers[transformer_id] = transformer

    def register_definition(self, definition: TransformerDefinition) -> None:
        self.register(definition.id, self._from_definition(definition))

    def register_definitions(self, definitions: Iterable[TransformerDefinition]) -> None:
        for definition in definitions:
            self.register_definition(definition)

    def has(self, transformer_id: str) -> bool:
        return transformer_id in self._transformers

    def ids(self) -> list[str]:
        return list(self._transformers)

    def execute(self, transformer_id: str, value: Any, context: Mapping[str, Any] | None = None) -> Any:
        transformer = self._transformers.get(transformer_id)
        if transformer is None:
            raise TransformerError(transformer_id, "not registered")
        try:
            return transformer(value, context or {})
        except TransformerError:
            raise
        except Exception as exc:
            raise TransformerError(transformer_id, str(exc)) from exc

    def apply(
        self,
        transformer_ids: Sequence[str],
        value: Any,
        context: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run ``transformer_ids`` in order, feeding each result to the next."""
        for transformer_id in transformer_ids:
            value = self.execute(transformer_id, value, context)
        return value

    # -- configuration-declared transformers ---------------------------------

    def _from_definition(self, definition: TransformerDefinition) -> Transformer:
        config = definition.config
        if definition.type == "regex":
            regex, count = compile_pattern(str(config.get("pattern", "")), str(config.get("flags", "")))
            replacement = replacement_template(str(config.get("replacement", "")))

            def regex_transform(value: Any, context: Mapping[str, Any]) -> str:
                return regex.sub(replacement, to_display_string(value), count=count)

            return regex_transform
        if definition.type == "computed":
            expression = str(config.get("expression", ""))

            def computed_transform(value: Any, context: Mapping[str, Any]) -> Any:
                try:
                    return evaluate_expression(expression, {**context, "value": value})
                except ExpressionError as exc:
                    raise TransformerError(definition.id, f"expression evaluation failed: {exc}") from exc

            return computed_transform
        if definition.type == "chain":
            steps = [str(step) for step in config.get("transformers") or []]

            def chain_transform(value: Any, context: Mapping[str, Any]) -> Any:
                if not steps:
                    raise TransformerError(definition.id, "chain transformers need at least one step")
                return self.apply(steps, value, context)

            return chain_transform
        raise TransformerError(definition.id, f'unknown transformer type "{definition.type}"')


def validate_references(manager: TransformerManager, configuration: Configuration) -> list[str]:
    """Declared transformer definitions plus every id a variable or prompt names."""
    errors = validate_definitions(configuration.transformers)
    declared = {definition.id for definition in configuration.transformers}

    def check(transformer_ids: Sequence[str], where: str) -> None:
        for item in transformer_ids:
            if item not in declared and not manager.has(item):
                errors.append(f'{where}Transformer "{item}" not found')

    for variable in configuration.variables:
        check(variable.transformers, f'Variable "{variable.id}": ')
    for prompt in configuration.prompts:
        check(prompt.transformers, f'Prompt "{prompt.id}": ')
    for task in configuration.tasks:
        for variable in task.variables:
            check(variable.transformers, f'Task "{task.id}" ({task.name}): Variable "{variable.id}": ')
        for prompt in task.prompts:
            check(prompt.transformers, f'Task "{task.id}" ({task.name}): Prompt "{prompt.id}": ')
    return errors
