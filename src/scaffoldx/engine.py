"""Run orchestration: load, validate, resolve, schedule, then preview or execute.

One ``Scaffolder`` owns one ``PluginRegistry``. A run goes through these
phases, in order, and fails fast before touching the target directory:

1. load the merged configuration; stop early if its ``enabled`` is false
   (lazily, with only the pre-supplied answers known)
2. validate variables, prompts and every task's type-specific config
3. drop tasks whose ``enabled`` is lazily false, then schedule the rest
4. resolve plain variables, then prompt defaults, then ask prompts, then
   resolve conditional variables
5. re-check the configuration's ``enabled`` strictly
6. preview (dry run) or execute each scheduled task, re-checking each task's
   enablement strictly against the resolved context
"""

from __future__ import annotations

import contextlib
import logging
from collections import ChainMap
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from scaffoldx import __version__
from scaffoldx.conditions import evaluate_enabled, evaluate_enabled_async, evaluate_required_async
from scaffoldx.configurations import ConfigurationLoader
from scaffoldx.dry_run import DryRunReport, is_task_enabled, preview_all
from scaffoldx.errors import TaskExecutionError, TaskValidationError
from scaffoldx.plugins import PluginRegistry, register_external_plugins
from scaffoldx.process import DEFAULT_EXEC_TIMEOUT
from scaffoldx.prompts import collect_answers, enabled_prompts, global_prompts, resolve_defaults, validate_prompts
from scaffoldx.scheduler import ExecutionPlan, build_execution_plan
from scaffoldx.state import save_state
from scaffoldx.tasks import register_builtin_tasks
from scaffoldx.transformers import TransformerManager, validate_references
from scaffoldx.types import Configuration, TaskDefinition
from scaffoldx.variables import resolve_variables, split_variables, validate_variables

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    config_path: Path
    target: Path = field(default_factory=Path.cwd)
    dry_run: bool = False
    assume_yes: bool = False
    interactive: bool = True
    answers: dict[str, Any] = field(default_factory=dict)
    exec_timeout: float = DEFAULT_EXEC_TIMEOUT
    plugins: tuple[str, ...] = ()
    entry_points: bool = True
    save_state: bool = True


@dataclass
class RunResult:
    configuration: Configuration
    plan: ExecutionPlan | None = None
    context: dict[str, Any] = field(default_factory=dict)
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    report: DryRunReport | None = None
    enabled: bool = True

    @property
    def dry_run(self) -> bool:
        return self.report is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "config": self.configuration.name,
            "enabled": self.enabled,
            "completed": list(self.completed),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }
        if self.plan is not None:
            payload["plan"] = self.plan.to_dict()
        if self.report is not None:
            payload["preview"] = self.report.to_dict()
        return payload


class Scaffolder:
    """Drives one scaffolding run against a target directory."""

    def __init__(
        self,
        registry: PluginRegistry | None = None,
        loader: ConfigurationLoader | None = None,
        *,
        builtins: bool = True,
        transformers: TransformerManager | None = None,
    ) -> None:
        self.registry = registry if registry is not None else PluginRegistry()
        self.loader = loader if loader is not None else ConfigurationLoader()
        self.transformers = transformers if transformers is not None else TransformerManager()
        if builtins:
            register_builtin_tasks(self.registry)

    # -- phases ------------------------------------------------------------

    async def load(self, path: Path) -> Configuration:
        return await self.loader.load(path)

    def validate(self, configuration: Configuration) -> None:
        """Raise TaskValidationError listing every problem found."""
        errors = [
            *validate_variables(configuration.variables, configuration.tasks),
            *validate_prompts(configuration.prompts, configuration.tasks),
            *self.registry.validate_tasks(configuration.tasks),
            *validate_references(self.transformers, configuration),
        ]
        if errors:
            raise TaskValidationError(errors)

    def plan(self, configuration: Configuration, context: Mapping[str, Any] | None = None) -> ExecutionPlan:
        """Schedule the tasks whose enablement is not already known to be false."""
        context = context or {}
        enabled: list[TaskDefinition] = []
        removed: list[str] = list(configuration.disabled_task_ids)
        for task in configuration.tasks:
            if evaluate_enabled(task.source_enabled, context, lazy=True) and evaluate_enabled(
                task.enabled, context, lazy=True
            ):
                enabled.append(task)
            else:
                logger.debug("Task %s disabled before scheduling", task.id)
                removed.append(task.id)
        return build_execution_plan(enabled, removed_ids=removed)

    async def resolve_context(
        self,
        configuration: Configuration,
        plan: ExecutionPlan,
        options: RunOptions,
    ) -> dict[str, Any]:
        declared = {prompt.id for prompt in configuration.prompts}
        declared.update(prompt.id for task in configuration.tasks for prompt in task.prompts)
        context: dict[str, Any] = {k: v for k, v in options.answers.items() if k not in declared}
        timeout = options.exec_timeout

        plain, conditional = split_variables(configuration.variables)
        context.update(await resolve_variables(plain, context, timeout=timeout, transformers=self.transformers))

        prompts = await enabled_prompts(global_prompts(configuration.prompts, plan.tasks), context, timeout=timeout)
        defaults = await resolve_defaults(prompts, context, timeout=timeout)
        context.update(
            collect_answers(
                prompts,
                defaults,
                context,
                preset=options.answers,
                assume_yes=options.assume_yes,
                interactive=options.interactive,
                transformers=self.transformers,
            )
        )

        context.update(await resolve_variables(conditional, context, timeout=timeout, transformers=self.transformers))
        return context

    def _scope(self, options: RunOptions):
        """Build the task-scoped context: task variables and task prompts over the run context."""
        transformers = self.transformers
        timeout = options.exec_timeout

        async def scope(task: TaskDefinition, context: Mapping[str, Any]) -> Mapping[str, Any]:
            local: dict[str, Any] = {}
            scoped = ChainMap(local, context)
            prompts = [prompt for prompt in task.prompts if not prompt.global_]
            if prompts:
                prompts = await enabled_prompts(prompts, scoped, timeout=timeout)
                defaults = await resolve_defaults(prompts, scoped, timeout=timeout)
                local.update(
                    collect_answers(
                        prompts,
                        defaults,
                        scoped,
                        preset=options.answers,
                        assume_yes=options.assume_yes,
                        interactive=options.interactive,
                        transformers=transformers,
                    )
                )
            if task.variables:
                plain, conditional = split_variables(task.variables)
                local.update(await resolve_variables(plain, scoped, timeout=timeout, transformers=transformers))
                local.update(await resolve_variables(conditional, scoped, timeout=timeout, transformers=transformers))
            return scoped

        return scope

    # -- run ---------------------------------------------------------------

    async def run(self, options: RunOptions) -> RunResult:
        config_path = Path(options.config_path).expanduser().resolve()
        target = Path(options.target).expanduser().resolve()
        configuration = await self.load(config_path)
        if not evaluate_enabled(configuration.enabled, options.answers, lazy=True):
            logger.info("Configuration %s is disabled", configuration.name)
            return RunResult(configuration=configuration, enabled=False)

        register_external_plugins(self.registry, options.plugins, entry_points=options.entry_points)
        self.validate(configuration)
        self.transformers.register_definitions(configuration.transformers)
        plan = self.plan(configuration, options.answers)

        target.mkdir(parents=True, exist_ok=True)
        with contextlib.chdir(target):
            context = await self.resolve_context(configuration, plan, options)
            result = RunResult(configuration=configuration, plan=plan, context=context)
            if not await evaluate_enabled_async(configuration.enabled, context, timeout=options.exec_timeout):
                logger.info("Configuration %s is disabled", configuration.name)
                result.enabled = False
                return result
            if options.dry_run:
                result.report = await preview_all(
                    plan, context, self.registry, scope=self._scope(options), timeout=options.exec_timeout
                )
                result.skipped = [preview.task_id for preview in result.report.skipped]
                return result
            await self._execute(plan, context, options, result)
            if options.save_state:
                save_state(target, configuration.name, result.completed, __version__)
        return result

    async def _execute(
        self,
        plan: ExecutionPlan,
        context: Mapping[str, Any],
        options: RunOptions,
        result: RunResult,
    ) -> None:
        scope = self._scope(options)
        await self.registry.call_hook("before_all", plan.tasks, context)
        for task in plan.tasks:
            if not await is_task_enabled(task, context, timeout=options.exec_timeout):
                logger.info("Skipping %s: condition not met", task.name)
                result.skipped.append(task.id)
                continue
            task_context = await scope(task, context)
            await self.registry.call_hook("before_task", task, task_context)
            logger.info("Running %s", task.name)
            try:
                await self.registry.execute(task, task_context)
            except Exception as exc:
                await self.registry.call_hook("on_error", task, exc)
                if await evaluate_required_async(task.required, task_context, timeout=options.exec_timeout):
                    raise TaskExecutionError(task.id, task.name, exc, result.completed) from exc
                logger.warning('Optional task "%s" failed: %s', task.name, exc)
                result.failed.append(task.id)
                continue
            result.completed.append(task.id)
            await self.registry.call_hook("after_task", task, task_context)
        await self.registry.call_hook("after_all", list(result.completed), context)
