"""scaffoldx - declarative project scaffolding from JSON task configurations."""

from __future__ import annotations

__version__ = "0.4.0"

from scaffoldx.configurations import ConfigurationLoader, load_configuration
from scaffoldx.dry_run import DryRunReport, TaskPreview, preview_all
from scaffoldx.engine import RunOptions, RunResult, Scaffolder
from scaffoldx.expressions import evaluate_condition, evaluate_expression
from scaffoldx.plugins import PluginRegistry, TaskHandlers, TaskPlugin, create_task_plugin
from scaffoldx.scheduler import ExecutionPlan, build_execution_plan, schedule
from scaffoldx.transformers import TransformerManager
from scaffoldx.values import interpolate, resolve_all, resolve_value

__all__ = [
    "ConfigurationLoader",
    "DryRunReport",
    "ExecutionPlan",
    "PluginRegistry",
    "RunOptions",
    "RunResult",
    "Scaffolder",
    "TaskHandlers",
    "TaskPlugin",
    "TaskPreview",
    "TransformerManager",
    "__version__",
    "build_execution_plan",
    "create_task_plugin",
    "evaluate_condition",
    "evaluate_expression",
    "interpolate",
    "load_configuration",
    "preview_all",
    "resolve_all",
    "resolve_value",
    "schedule",
]
