"""Data model for scaffoldx configurations."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from scaffoldx.errors import InvalidConfigError

CONFIG_NAME_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
IDENTIFIER_RE = re.compile(r"^[a-zA-Z_$][a-zA-Z0-9_$]*$")

PROMPT_TYPES = ("input", "password", "number", "select", "confirm")
TRANSFORMER_TYPES = ("regex", "computed", "chain")
OVERRIDE_STRATEGIES = ("merge", "replace")


def _where(path: Path | None) -> str | None:
    return str(path) if path is not None else None


def _require_mapping(data: Any, path: Path | None, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidConfigError(_where(path), f"{what} must be an object")
    return data


def _string_list(data: dict[str, Any], key: str, path: Path | None, what: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if isinstance(value, str) and key == "extends":
        return (value,)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidConfigError(_where(path), f"{what} '{key}' must be an array of strings")
    return tuple(value)


def _override(data: dict[str, Any], path: Path | None, what: str) -> str | None:
    value = data.get("override")
    if value is None:
        return None
    if value not in OVERRIDE_STRATEGIES:
        raise InvalidConfigError(
            _where(path), f"{what} has invalid override strategy {value!r} (expected 'merge' or 'replace')"
        )
    return value


@dataclass(frozen=True)
class VariableDefinition:
    """Variable resolved without user interaction."""

    id: str
    value: Any
    global_: bool = True
    override: str | None = None
    # ids applied in order once the value is resolved
    transformers: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, *, path: Path | None = None) -> VariableDefinition:
        data = _require_mapping(data, path, "variable")
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise InvalidConfigError(_where(path), "variable is missing a string 'id'")
        if "value" not in data:
            raise InvalidConfigError(_where(path), f'variable "{item_id}" is missing \'value\'')
        return cls(
            id=item_id,
            value=data["value"],
            global_=bool(data.get("global", True)),
            override=_override(data, path, f'variable "{item_id}"'),
            transformers=_string_list(data, "transformers", path, f'variable "{item_id}"'),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "value": self.value}
        if not self.global_:
            payload["global"] = False
        if self.override:
            payload["override"] = self.override
        if self.transformers:
            payload["transformers"] = list(self.transformers)
        return payload


@dataclass(frozen=True)
class PromptChoice:
    name: str
    value: Any


@dataclass(frozen=True)
class PromptDefinition:
    """Question put to the user before tasks run."""

    id: str
    type: str
    message: str
    default: Any = None
    required: Any = None
    enabled: Any = None
    choices: tuple[PromptChoice, ...] = ()
    min: float | None = None
    max: float | None = None
    placeholder: str | None = None
    global_: bool = False
    override: str | None = None
    transformers: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, *, path: Path | None = None) -> PromptDefinition:
        data = _require_mapping(data, path, "prompt")
        item_id = data.get("id")
        if not isinstance(item_id, str):
            raise InvalidConfigError(_where(path), "prompt is missing a string 'id'")
        choices: list[PromptChoice] = []
        for raw in data.get("choices") or []:
            if isinstance(raw, dict):
                choices.append(PromptChoice(name=str(raw.get("name", raw.get("value"))), value=raw.get("value")))
            else:
                choices.append(PromptChoice(name=str(raw), value=raw))
        return cls(
            id=item_id,
            type=str(data.get("type", "")),
            message=str(data.get("message", "")),
            default=data.get("default"),
            required=data.get("required"),
            enabled=data.get("enabled"),
            choices=tuple(choices),
            min=data.get("min"),
            max=data.get("max"),
            placeholder=data.get("placeholder"),
            global_=bool(data.get("global", False)),
            override=_override(data, path, f'prompt "{item_id}"'),
            transformers=_string_list(data, "transformers", path, f'prompt "{item_id}"'),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "type": self.type, "message": self.message}
        for key in ("default", "required", "enabled", "min", "max", "placeholder", "override"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.choices:
            payload["choices"] = [{"name": c.name, "value": c.value} for c in self.choices]
        if self.global_:
            payload["global"] = True
        if self.transformers:
            payload["transformers"] = list(self.transformers)
        return payload


@dataclass(frozen=True)
class TaskDefinition:
    """One unit of project mutation."""

    id: str
    name: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    required: Any = None
    enabled: Any = None
    dependencies: tuple[str, ...] = ()
    prompts: tuple[PromptDefinition, ...] = ()
    variables: tuple[VariableDefinition, ...] = ()
    override: str | None = None
    # directory-relative resources (templateFile) resolve against this
    source_path: Path | None = None
    # non-literal `enabled` of the declaring document
    source_enabled: Any = None

    @classmethod
    def from_dict(cls, data: Any, *, path: Path | None = None) -> TaskDefinition:
        data = _require_mapping(data, path, "task")
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise InvalidConfigError(_where(path), "task is missing a string 'id'")
        override = _override(data, path, f'task "{item_id}"')
        task_type = data.get("type")
        # an override entry may omit fields it inherits from the entry it merges into
        if not isinstance(task_type, str) and override != "merge":
            raise InvalidConfigError(_where(path), f'task "{item_id}" is missing a string \'type\'')
        config = data.get("config", {})
        if not isinstance(config, dict):
            raise InvalidConfigError(_where(path), f'task "{item_id}" config must be an object')
        return cls(
            id=item_id,
            name=str(data.get("name", item_id)),
            type=task_type if isinstance(task_type, str) else "",
            config=dict(config),
            description=str(data.get("description", "")),
            required=data.get("required"),
            enabled=data.get("enabled"),
            dependencies=_string_list(data, "dependencies", path, f'task "{item_id}"'),
            prompts=tuple(PromptDefinition.from_dict(p, path=path) for p in data.get("prompts") or []),
            variables=tuple(VariableDefinition.from_dict(v, path=path) for v in data.get("variables") or []),
            override=override,
            source_path=path,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "config": self.config,
        }
        if self.description:
            payload["description"] = self.description
        if self.required is not None:
            payload["required"] = self.required
        if self.enabled is not None:
            payload["enabled"] = self.enabled
        if self.dependencies:
            payload["dependencies"] = list(self.dependencies)
        if self.prompts:
            payload["prompts"] = [p.to_dict() for p in self.prompts]
        if self.variables:
            payload["variables"] = [v.to_dict() for v in self.variables]
        if self.override:
            payload["override"] = self.override
        return payload

    @property
    def base_dir(self) -> Path | None:
        return self.source_path.parent if self.source_path is not None else None


@dataclass(frozen=True)
class TransformerDefinition:
    """Named value transformer declared by a configuration (regex, computed or chain)."""

    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    @classmethod
    def from_dict(cls, data: Any, *, path: Path | None = None) -> TransformerDefinition:
        data = _require_mapping(data, path, "transformer")
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise InvalidConfigError(_where(path), "transformer is missing a string 'id'")
        config = data.get("config", {})
        if not isinstance(config, dict):
            raise InvalidConfigError(_where(path), f'transformer "{item_id}" config must be an object')
        return cls(
            id=item_id,
            type=str(data.get("type", "")),
            config=dict(config),
            description=str(data.get("description", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "type": self.type, "config": self.config}
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass(frozen=True)
class ConfigurationDocument:
    """One parsed configuration file, before inheritance is applied."""

    name: str
    path: Path
    description: str = ""
    extends: tuple[str, ...] = ()
    enabled: Any = None
    dependencies: tuple[str, ...] = ()
    variables: tuple[VariableDefinition, ...] = ()
    prompts: tuple[PromptDefinition, ...] = ()
    tasks: tuple[TaskDefinition, ...] = ()
    transformers: tuple[TransformerDefinition, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, *, path: Path) -> ConfigurationDocument:
        data = _require_mapping(data, path, "configuration")
        name = data.get("name")
        if name is None or name == "":
            raise InvalidConfigError.missing_name(str(path))
        if not isinstance(name, str) or not CONFIG_NAME_RE.match(name):
            raise InvalidConfigError.invalid_name(str(path), str(name))
        for key in ("tasks", "prompts", "variables", "transformers"):
            if key in data and not isinstance(data[key], list):
                raise InvalidConfigError(str(path), f"'{key}' must be an array")
        enabled = data.get("enabled")
        tasks = tuple(TaskDefinition.from_dict(t, path=path) for t in data.get("tasks") or [])
        return cls(
            name=name,
            path=path,
            description=str(data.get("description", "")),
            extends=_string_list(data, "extends", path, "configuration"),
            enabled=enabled,
            dependencies=_string_list(data, "dependencies", path, "configuration"),
            variables=tuple(VariableDefinition.from_dict(v, path=path) for v in data.get("variables") or []),
            prompts=tuple(PromptDefinition.from_dict(p, path=path) for p in data.get("prompts") or []),
            tasks=tasks,
            transformers=tuple(
                TransformerDefinition.from_dict(t, path=path) for t in data.get("transformers") or []
            ),
        )


@dataclass(frozen=True)
class Configuration:
    """Effective configuration after following ``extends``."""

    name: str
    path: Path
    description: str = ""
    enabled: Any = None
    dependencies: tuple[str, ...] = ()
    variables: tuple[VariableDefinition, ...] = ()
    prompts: tuple[PromptDefinition, ...] = ()
    tasks: tuple[TaskDefinition, ...] = ()
    transformers: tuple[TransformerDefinition, ...] = ()
    # every file that contributed, ancestors first
    sources: tuple[Path, ...] = ()
    # ids of tasks dropped with a literal `enabled: false` document
    disabled_task_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.description:
            payload["description"] = self.description
        if self.enabled is not None:
            payload["enabled"] = self.enabled
        if self.dependencies:
            payload["dependencies"] = list(self.dependencies)
        payload["variables"] = [v.to_dict() for v in self.variables]
        payload["prompts"] = [p.to_dict() for p in self.prompts]
        payload["tasks"] = [t.to_dict() for t in self.tasks]
        if self.transformers:
            payload["transformers"] = [t.to_dict() for t in self.transformers]
        return payload
