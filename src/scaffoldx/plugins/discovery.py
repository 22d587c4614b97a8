"""Find and register third-party task plugins.

Two sources, registered after the built-ins so they can shadow them:

- installed distributions exposing the ``scaffoldx.plugins`` entry-point group
- module names listed in the ``plugins`` setting

An entry point or module may provide a ``TaskPlugin`` instance, or a
``register(registry)`` callable.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable, Iterator
from types import ModuleType
from typing import Any

from scaffoldx.errors import PluginConfigurationError
from scaffoldx.plugins.registry import PluginRegistry, TaskPlugin

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "scaffoldx.plugins"


def iter_entry_point_plugins() -> Iterator[tuple[str, Any]]:
    """Yield ``(name, loaded object)`` for every ``scaffoldx.plugins`` entry point."""
    from importlib.metadata import entry_points

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        yield ep.name, ep.load()


def install(registry: PluginRegistry, source: str, target: Any) -> None:
    """Register whatever ``target`` offers: a TaskPlugin, a module or a register callable."""
    if isinstance(target, TaskPlugin):
        registry.register_plugin(target)
        return
    if isinstance(target, ModuleType):
        plugin = getattr(target, "plugin", None) or getattr(target, "PLUGIN", None)
        if isinstance(plugin, TaskPlugin):
            registry.register_plugin(plugin)
            return
        target = getattr(target, "register", None)
    if callable(target):
        target(registry)
        return
    raise PluginConfigurationError(
        f"Plugin {source!r} exposes neither a TaskPlugin nor a register(registry) function"
    )


def load_plugin_modules(registry: PluginRegistry, module_names: Iterable[str]) -> None:
    for module_name in module_names:
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise PluginConfigurationError(f"Cannot import plugin module {module_name!r}: {exc}") from exc
        install(registry, module_name, module)
        logger.debug("Loaded plugin module %s", module_name)


def register_external_plugins(
    registry: PluginRegistry,
    module_names: Iterable[str] = (),
    *,
    entry_points: bool = True,
) -> None:
    if entry_points:
        for name, target in iter_entry_point_plugins():
            install(registry, name, target)
            logger.debug("Loaded plugin entry point %s", name)
    load_plugin_modules(registry, module_names)
