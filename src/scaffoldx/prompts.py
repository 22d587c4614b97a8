"""Prompt declarations: validation, default resolution and answer collection."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import click
import typer

from scaffoldx.conditions import evaluate_enabled_async, evaluate_required
from scaffoldx.errors import PromptError
from scaffoldx.process import DEFAULT_EXEC_TIMEOUT
from scaffoldx.transformers import TransformerManager
from scaffoldx.types import IDENTIFIER_RE, PROMPT_TYPES, PromptDefinition, TaskDefinition
from scaffoldx.values import resolve_all

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_TRUE_WORDS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_WORDS = frozenset({"false", "no", "n", "0", "off"})


# --------------------------------------------------------------------------
# validation
# --------------------------------------------------------------------------


def _validate_prompt(prompt: PromptDefinition, where: str) -> list[str]:
    prefix = f'{where}Prompt "{prompt.id}": '
    errors: list[str] = []
    if not IDENTIFIER_RE.match(prompt.id):
        errors.append(f"{prefix}id must be a valid identifier")
    if prompt.type not in PROMPT_TYPES:
        errors.append(f'{prefix}type must be one of {", ".join(PROMPT_TYPES)} (got "{prompt.type}")')
    if not prompt.message.strip():
        errors.append(f"{prefix}message is required")
    if prompt.type == "select" and not prompt.choices:
        errors.append(f"{prefix}select prompts require at least one choice")
    if prompt.min is not None and prompt.max is not None and prompt.min > prompt.max:
        errors.append(f"{prefix}min ({prompt.min}) must not be greater than max ({prompt.max})")
    return errors


def validate_prompts(
    prompts: Sequence[PromptDefinition],
    tasks: Sequence[TaskDefinition] = (),
) -> list[str]:
    """Structural checks plus global/task-scoped id collisions."""
    errors: list[str] = []
    global_ids = {prompt.id for prompt in prompts}
    scoped_ids: dict[str, str] = {}
    for prompt in prompts:
        errors.extend(_validate_prompt(prompt, ""))
    for task in tasks:
        where = f'Task "{task.id}" ({task.name}): '
        for prompt in task.prompts:
            errors.extend(_validate_prompt(prompt, where))
            if prompt.global_:
                global_ids.add(prompt.id)
            else:
                scoped_ids.setdefault(prompt.id, task.id)
    for item_id in sorted(global_ids & scoped_ids.keys()):
        errors.append(
            f'Prompt "{item_id}" is declared global and also task-scoped in task "{scoped_ids[item_id]}"'
        )
    return errors


def global_prompts(prompts: Sequence[PromptDefinition], tasks: Iterable[TaskDefinition]) -> list[PromptDefinition]:
    """Configuration prompts followed by task prompts hoisted with ``global: true``."""
    collected = list(prompts)
    seen = {prompt.id for prompt in collected}
    for task in tasks:
        for prompt in task.prompts:
            if prompt.global_ and prompt.id not in seen:
                collected.append(prompt)
                seen.add(prompt.id)
    return collected


# --------------------------------------------------------------------------
# defaults and enablement
# --------------------------------------------------------------------------


async def resolve_defaults(
    prompts: Iterable[PromptDefinition],
    context: Mapping[str, Any],
    *,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
    cwd: Path | None = None,
) -> dict[str, Any]:
    specs = {prompt.id: prompt.default for prompt in prompts if prompt.default is not None}
    if not specs:
        return {}
    return await resolve_all(specs, context, kind="Prompt", timeout=timeout, cwd=cwd)


async def enabled_prompts(
    prompts: Iterable[PromptDefinition],
    context: Mapping[str, Any],
    *,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
) -> list[PromptDefinition]:
    enabled: list[PromptDefinition] = []
    for prompt in prompts:
        if await evaluate_enabled_async(prompt.enabled, context, timeout=timeout):
            enabled.append(prompt)
        else:
            logger.debug("Prompt %s disabled", prompt.id)
    return enabled


# --------------------------------------------------------------------------
# answers
# --------------------------------------------------------------------------


def _parse_number(prompt: PromptDefinition, raw: Any) -> int | float:
    if isinstance(raw, bool):
        raise PromptError(f'Prompt "{prompt.id}" expects a number, got {raw!r}')
    if isinstance(raw, (int, float)):
        number = raw
    else:
        text = str(raw).strip()
        if not _NUMBER_RE.match(text):
            raise PromptError(f'Prompt "{prompt.id}" expects a number, got "{text}"')
        number = float(text) if "." in text else int(text)
    if prompt.min is not None and number < prompt.min:
        raise PromptError(f'Prompt "{prompt.id}" must be at least {prompt.min}')
    if prompt.max is not None and number > prompt.max:
        raise PromptError(f'Prompt "{prompt.id}" must be at most {prompt.max}')
    return number


def coerce_answer(prompt: PromptDefinition, raw: Any) -> Any:
    """Convert a pre-supplied answer (usually a ``--set`` string) to the prompt's type."""
    if prompt.type == "number":
        return _parse_number(prompt, raw)
    if prompt.type == "confirm":
        if isinstance(raw, bool):
            return raw
        word = str(raw).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise PromptError(f'Prompt "{prompt.id}" expects yes/no, got "{raw}"')
    if prompt.type == "select":
        for choice in prompt.choices:
            if raw == choice.value or str(raw) in (choice.name, str(choice.value)):
                return choice.value
        names = ", ".join(choice.name for choice in prompt.choices)
        raise PromptError(f'Prompt "{prompt.id}" must be one of: {names}')
    return raw if isinstance(raw, str) else str(raw)


def ask(prompt: PromptDefinition, default: Any = None) -> Any:
    """Ask one question on the terminal."""
    message = prompt.message
    if prompt.type == "confirm":
        return typer.confirm(message, default=bool(default) if default is not None else False)
    if prompt.type == "select":
        names = [choice.name for choice in prompt.choices]
        default_name = next((c.name for c in prompt.choices if c.value == default), None)
        picked = typer.prompt(message, type=click.Choice(names), default=default_name, show_choices=True)
        return next(choice.value for choice in prompt.choices if choice.name == picked)
    if prompt.type == "number":
        value = typer.prompt(message, type=click.FloatRange(min=prompt.min, max=prompt.max), default=default)
        return int(value) if float(value).is_integer() else float(value)
    hide = prompt.type == "password"
    if default is None and prompt.placeholder:
        message = f"{message} ({prompt.placeholder})"
    if default is None:
        return typer.prompt(message, default="", show_default=False, hide_input=hide)
    return typer.prompt(message, default=str(default), hide_input=hide)


def collect_answers(
    prompts: Sequence[PromptDefinition],
    defaults: Mapping[str, Any],
    context: Mapping[str, Any],
    *,
    preset: Mapping[str, Any] | None = None,
    assume_yes: bool = False,
    interactive: bool = True,
    transformers: TransformerManager | None = None,
) -> dict[str, Any]:
    """Answer every prompt from ``preset``, the defaults, or the terminal.

    With ``assume_yes`` or when not interactive the resolved default is used;
    a required prompt with no answer then raises PromptError. Empty answers
    to optional prompts are left out of the result. Each answer then runs
    through the prompt's ``transformers``.
    """
    preset = preset or {}
    answers: dict[str, Any] = {}
    for prompt in prompts:
        if prompt.id in preset:
            answers[prompt.id] = coerce_answer(prompt, preset[prompt.id])
            continue
        default = defaults.get(prompt.id)
        required = prompt.required is not None and evaluate_required(prompt.required, context)
        if assume_yes or not interactive:
            if default is None:
                if required:
                    raise PromptError(
                        f'Prompt "{prompt.id}" is required but has no default; pass --set {prompt.id}=...'
                    )
                continue
            answers[prompt.id] = default if prompt.type in ("input", "password") else coerce_answer(prompt, default)
            continue
        while True:
            answer = ask(prompt, default)
            if answer not in ("", None) or not required:
                break
            typer.echo(f"{prompt.id} is required.")
        if answer not in ("", None):
            answers[prompt.id] = answer
    return _transform_answers(prompts, answers, context, transformers)


def _transform_answers(
    prompts: Sequence[PromptDefinition],
    answers: dict[str, Any],
    context: Mapping[str, Any],
    transformers: TransformerManager | None,
) -> dict[str, Any]:
    if not any(prompt.transformers for prompt in prompts):
        return answers
    manager = transformers if transformers is not None else TransformerManager()
    for prompt in prompts:
        if prompt.transformers and prompt.id in answers:
            answers[prompt.id] = manager.apply(prompt.transformers, answers[prompt.id], {**context, **answers})
    return answers
