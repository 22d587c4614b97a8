"""Built-in task types."""

from __future__ import annotations

from scaffoldx.plugins.registry import PluginRegistry, TaskHandlers
from scaffoldx.tasks import content, files, system

BUILTIN_TASKS: dict[str, TaskHandlers] = {
    "write": TaskHandlers(files.execute_write, files.diff_write, files.validate_write),
    "template": TaskHandlers(files.execute_template, files.diff_template, files.validate_template),
    "create": TaskHandlers(files.execute_create, files.diff_create, files.validate_create),
    "append": TaskHandlers(files.execute_append, files.diff_append, files.validate_append),
    "mkdir": TaskHandlers(files.execute_mkdir, files.diff_mkdir, files.validate_mkdir),
    "delete": TaskHandlers(files.execute_delete, files.diff_delete, files.validate_delete),
    "rename": TaskHandlers(files.execute_rename, files.diff_rename, files.validate_from_to("rename")),
    "move": TaskHandlers(files.execute_move, files.diff_move, files.validate_from_to("move")),
    "copy": TaskHandlers(files.execute_copy, files.diff_copy, files.validate_from_to("copy")),
    "update-json": TaskHandlers(content.execute_update_json, content.diff_update_json, content.validate_update_json),
    "regex-replace": TaskHandlers(
        content.execute_regex_replace, content.diff_regex_replace, content.validate_regex_replace
    ),
    "replace-in-file": TaskHandlers(
        content.execute_replace_in_file, content.diff_replace_in_file, content.validate_replace_in_file
    ),
    "exec": TaskHandlers(system.execute_exec, system.diff_exec, system.validate_exec),
    "exec-file": TaskHandlers(system.execute_exec_file, system.diff_exec_file, system.validate_exec_file),
    "git-init": TaskHandlers(system.execute_git_init, system.diff_git_init, system.validate_git_init),
}


def register_builtin_tasks(registry: PluginRegistry) -> None:
    for task_type, handlers in BUILTIN_TASKS.items():
        registry.register(task_type, handlers)


__all__ = ["BUILTIN_TASKS", "register_builtin_tasks"]
