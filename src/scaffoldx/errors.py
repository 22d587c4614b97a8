"""Error taxonomy for scaffoldx.

Configuration and validation errors are raised before anything touches the
target directory. Execution errors are raised per task by the engine.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

REASON_CONFIG_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
REASON_CONFIG_PARSE = "CONFIG_PARSE_ERROR"
REASON_INVALID_CONFIG = "INVALID_CONFIG"
REASON_DUPLICATE_ID = "DUPLICATE_ID"
REASON_UNKNOWN_DEPENDENCY = "UNKNOWN_DEPENDENCY"
REASON_CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
REASON_TASK_VALIDATION = "TASK_VALIDATION_FAILED"
REASON_TASK_FAILED = "REQUIRED_TASK_FAILED"
REASON_PROMPT = "PROMPT_UNANSWERED"
REASON_SETTINGS = "SETTINGS_INVALID"
REASON_TEMPLATE = "TEMPLATE_ERROR"
REASON_TRANSFORMER = "TRANSFORMER_ERROR"


class ScaffoldxError(RuntimeError):
    """Base class for every error scaffoldx raises on purpose."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = REASON_INVALID_CONFIG) -> None:
        super().__init__(message)
        self.reason_code = reason_code


class ConfigurationError(ScaffoldxError):
    """Fatal problem with the task configuration documents."""


class ConfigFileNotFoundError(ConfigurationError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Configuration file not found: {path}", REASON_CONFIG_NOT_FOUND)
        self.path = path


class ConfigParseError(ConfigurationError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Failed to parse configuration file {path}: {detail}", REASON_CONFIG_PARSE)
        self.path = path


class InvalidConfigError(ConfigurationError):
    def __init__(self, path: str | None, reason: str) -> None:
        where = f"Invalid configuration file {path}" if path else "Invalid configuration"
        super().__init__(f"{where}: {reason}", REASON_INVALID_CONFIG)
        self.path = path

    @classmethod
    def missing_name(cls, path: str) -> InvalidConfigError:
        return cls(path, "'name' field is required")

    @classmethod
    def invalid_name(cls, path: str, name: str) -> InvalidConfigError:
        return cls(
            path,
            f"'name' field \"{name}\" must contain only lowercase letters, digits, and hyphens. "
            "It cannot start or end with a hyphen, and cannot contain consecutive hyphens.",
        )


class DuplicateIdError(ConfigurationError):
    def __init__(self, item_id: str, kind: str, existing_kind: str | None = None) -> None:
        if existing_kind and existing_kind != kind:
            message = f'Duplicate ID "{item_id}": {kind} id conflicts with an existing {existing_kind} id'
        else:
            message = (
                f'Duplicate {kind} ID "{item_id}". Set "override": "merge" or "replace" '
                "to redefine an inherited entry."
            )
        super().__init__(message, REASON_DUPLICATE_ID)
        self.item_id = item_id
        self.kind = kind


class UnknownDependencyError(ConfigurationError):
    def __init__(self, task_id: str, dependency: str) -> None:
        super().__init__(
            f'Task "{task_id}" depends on unknown task "{dependency}"',
            REASON_UNKNOWN_DEPENDENCY,
        )
        self.task_id = task_id
        self.dependency = dependency


class CircularDependencyError(ConfigurationError):
    """Raised for `extends` cycles, configuration cycles and task cycles."""

    def __init__(self, message: str, chain: Sequence[str]) -> None:
        super().__init__(message, REASON_CIRCULAR_DEPENDENCY)
        self.chain = tuple(chain)

    @classmethod
    def for_extends(cls, visiting: Iterable[str], path: str) -> CircularDependencyError:
        chain = [*visiting, path]
        return cls(f"Circular dependency detected: {' -> '.join(chain)}", chain)

    @classmethod
    def for_tasks(cls, cycle: Sequence[str]) -> CircularDependencyError:
        return cls(
            f"Circular dependency detected involving task: {cycle[0]} ({' -> '.join(cycle)})",
            cycle,
        )

    @classmethod
    def for_configurations(cls, cycle: Sequence[str]) -> CircularDependencyError:
        return cls(
            f"Circular dependency detected in configuration dependencies: {' -> '.join(cycle)}",
            cycle,
        )


class TaskValidationError(ScaffoldxError):
    """Aggregated validation failure for a whole task list."""

    def __init__(self, errors: Sequence[str], heading: str = "Task validation failed") -> None:
        rendered = "\n".join(f"  - {item}" for item in errors)
        super().__init__(f"{heading}:\n{rendered}", REASON_TASK_VALIDATION)
        self.errors = list(errors)


class TaskExecutionError(ScaffoldxError):
    """A required task failed; the run stops here."""

    def __init__(self, task_id: str, task_name: str, cause: BaseException, completed: Sequence[str]) -> None:
        super().__init__(f'Required task "{task_name}" ({task_id}) failed: {cause}', REASON_TASK_FAILED)
        self.task_id = task_id
        self.completed_task_ids = list(completed)
        self.__cause__ = cause


class PromptError(ScaffoldxError):
    def __init__(self, message: str) -> None:
        super().__init__(message, REASON_PROMPT)


class SettingsError(ScaffoldxError):
    def __init__(self, message: str) -> None:
        super().__init__(message, REASON_SETTINGS)


class TemplateError(ScaffoldxError):
    def __init__(self, message: str) -> None:
        super().__init__(message, REASON_TEMPLATE)


class TransformerError(ScaffoldxError):
    def __init__(self, transformer_id: str, detail: str) -> None:
        super().__init__(f'Transformer "{transformer_id}" failed: {detail}', REASON_TRANSFORMER)
        self.transformer_id = transformer_id


class PluginConfigurationError(ScaffoldxError):
    """A task handler received a config it cannot act on."""

    def __init__(self, message: str) -> None:
        super().__init__(message, REASON_INVALID_CONFIG)
