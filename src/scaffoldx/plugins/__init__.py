"""Task plugin registry and discovery."""

from __future__ import annotations

from scaffoldx.plugins.discovery import ENTRY_POINT_GROUP, register_external_plugins
from scaffoldx.plugins.registry import (
    HOOK_NAMES,
    PluginRegistry,
    TaskHandlers,
    TaskPlugin,
    create_task_plugin,
)

__all__ = [
    "ENTRY_POINT_GROUP",
    "HOOK_NAMES",
    "PluginRegistry",
    "TaskHandlers",
    "TaskPlugin",
    "create_task_plugin",
    "register_external_plugins",
]
