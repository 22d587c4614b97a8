"""Task-type dispatch: ``type`` string to a {validate, execute, diff} handler triple."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from scaffoldx.errors import PluginConfigurationError
from scaffoldx.types import TaskDefinition

logger = logging.getLogger(__name__)

Context = Mapping[str, Any]
ValidateFn = Callable[[dict[str, Any]], list[str]]
ExecuteFn = Callable[[dict[str, Any], Context, TaskDefinition], "Awaitable[None] | None"]
DiffFn = Callable[[dict[str, Any], Context, "TaskDefinition | None"], "Awaitable[list[str]] | list[str]"]

HOOK_NAMES = ("before_all", "after_all", "before_task", "after_task", "on_error")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class TaskHandlers:
    """Handlers for one task type. Each may be sync or async."""

    execute: ExecuteFn
    diff: DiffFn | None = None
    validate: ValidateFn | None = None


@dataclass(frozen=True)
class TaskPlugin:
    """A named bundle of task types sharing one handler triple."""

    name: str
    task_types: tuple[str, ...]
    execute: ExecuteFn
    diff: DiffFn | None = None
    validate: ValidateFn | None = None
    version: str | None = None

    @property
    def handlers(self) -> TaskHandlers:
        return TaskHandlers(execute=self.execute, diff=self.diff, validate=self.validate)


def create_task_plugin(
    name: str,
    task_types: str | Iterable[str],
    execute: ExecuteFn,
    *,
    diff: DiffFn | None = None,
    validate: ValidateFn | None = None,
    version: str | None = None,
) -> TaskPlugin:
    """Build a TaskPlugin, checking the fields a registry relies on."""
    if not name:
        raise PluginConfigurationError("Plugin name is required")
    types = (task_types,) if isinstance(task_types, str) else tuple(task_types)
    if not types:
        raise PluginConfigurationError(f"Plugin {name} must define at least one task type")
    if not callable(execute):
        raise PluginConfigurationError(f"Plugin {name} must provide an execute function")
    return TaskPlugin(name=name, task_types=types, execute=execute, diff=diff, validate=validate, version=version)


@dataclass
class PluginRegistry:
    """Mutable registry owned by one orchestrator for one run.

    Registering a type twice replaces the earlier handlers (with a warning)
    so user plugins can shadow built-ins.
    """

    _handlers: dict[str, TaskHandlers] = field(default_factory=dict)
    _plugins: dict[str, TaskPlugin] = field(default_factory=dict)
    _hooks: dict[str, Callable[..., Any]] = field(default_factory=dict)

    # -- registration ------------------------------------------------------

    def register(self, task_type: str, handlers: TaskHandlers) -> None:
        if task_type in self._handlers:
            logger.warning('Task type "%s" is already registered; overriding the previous handlers', task_type)
        self._handlers[task_type] = handlers

    def register_plugin(self, plugin: TaskPlugin) -> None:
        if plugin.name in self._plugins:
            logger.warning('Plugin "%s" is already registered; replacing it', plugin.name)
            self.unregister_plugin(plugin.name)
        for task_type in plugin.task_types:
            self.register(task_type, plugin.handlers)
        self._plugins[plugin.name] = plugin
        logger.debug(
            "Registered plugin: %s%s", plugin.name, f" v{plugin.version}" if plugin.version else ""
        )

    def unregister_plugin(self, name: str) -> None:
        plugin = self._plugins.pop(name, None)
        if plugin is None:
            return
        for task_type in plugin.task_types:
            # only drop handlers the plugin still owns
            current = self._handlers.get(task_type)
            if current is not None and current.execute is plugin.execute:
                del self._handlers[task_type]

    def is_registered(self, task_type: str) -> bool:
        return task_type in self._handlers

    def unregister(self, task_type: str) -> None:
        self._handlers.pop(task_type, None)

    def clear(self) -> None:
        self._handlers.clear()
        self._plugins.clear()
        self._hooks.clear()

    def get(self, task_type: str) -> TaskHandlers | None:
        return self._handlers.get(task_type)

    def task_types(self) -> list[str]:
        return sorted(self._handlers)

    def plugins(self) -> list[str]:
        return list(self._plugins)

    # -- validation --------------------------------------------------------

    def validate_task(self, task: TaskDefinition) -> list[str]:
        prefix = f'Task "{task.id}" ({task.name}): '
        handlers = self._handlers.get(task.type)
        if handlers is None:
            return [f'{prefix}Unknown task type "{task.type}"']
        errors: list[str] = []
        condition = task.config.get("condition")
        if condition is not None and not isinstance(condition, str):
            errors.append(f"{prefix}config.condition must be a string expression")
        if handlers.validate is not None:
            errors.extend(f"{prefix}{message}" for message in handlers.validate(task.config))
        return errors

    def validate_tasks(self, tasks: Sequence[TaskDefinition]) -> list[str]:
        """All problems across ``tasks``; any entry fails the whole set."""
        errors: list[str] = []
        for task in tasks:
            errors.extend(self.validate_task(task))
        return errors

    # -- dispatch ----------------------------------------------------------

    def _require(self, task: TaskDefinition) -> TaskHandlers:
        handlers = self._handlers.get(task.type)
        if handlers is None:
            raise PluginConfigurationError(f'Unknown task type "{task.type}"')
        return handlers

    async def execute(self, task: TaskDefinition, context: Context) -> None:
        handlers = self._require(task)
        await _maybe_await(handlers.execute(task.config, context, task))

    async def diff(self, task: TaskDefinition, context: Context) -> list[str]:
        handlers = self._require(task)
        if handlers.diff is None:
            return [f'No preview available for task type "{task.type}"']
        lines = await _maybe_await(handlers.diff(task.config, context, task))
        if isinstance(lines, str):
            return lines.splitlines()
        return list(lines)

    # -- lifecycle hooks ---------------------------------------------------

    def register_hooks(self, **hooks: Callable[..., Any]) -> None:
        for name, hook in hooks.items():
            if name not in HOOK_NAMES:
                raise PluginConfigurationError(f"Unknown hook {name!r}; expected one of {', '.join(HOOK_NAMES)}")
            self._hooks[name] = hook

    async def call_hook(self, name: str, *args: Any) -> None:
        """Run a hook if one is registered. Hook failures are logged, never raised."""
        hook = self._hooks.get(name)
        if hook is None:
            return
        try:
            await _maybe_await(hook(*args))
        except Exception as exc:
            logger.error("Error in %s hook: %s", name, exc)
