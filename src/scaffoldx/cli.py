"""scaffoldx command line: run, validate, plan, status, version."""

from __future__ import annotations

import asyncio
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any

import typer
import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.markup import escape

from scaffoldx import __version__
from scaffoldx.engine import RunOptions, RunResult, Scaffolder
from scaffoldx.errors import ScaffoldxError, TaskExecutionError
from scaffoldx.log import configure_logging
from scaffoldx.plugins import register_external_plugins
from scaffoldx.schema import validate_file
from scaffoldx.settings import Settings, load_settings
from scaffoldx.state import STATE_FILENAME, load_state

cli = typer.Typer(
    name="scaffoldx",
    help="scaffoldx - declarative project scaffolding from task configurations",
    no_args_is_help=True,
)
console = Console()


class PlanFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    return typer.Exit(1)


def _parse_assignments(values: list[str]) -> dict[str, str]:
    answers: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected id=value, got `{item}`", param_hint="--set")
        answers[key.strip()] = value
    return answers


def _settings(target: Path, verbose: bool, quiet: bool) -> Settings:
    settings = load_settings(target)
    level = "DEBUG" if verbose else "ERROR" if quiet else settings.log_level
    configure_logging(level)
    return settings


def _config_path(config: Path | None, target: Path, settings: Settings) -> Path:
    path = config if config is not None else Path(settings.tasks_file)
    path = path.expanduser()
    return path if path.is_absolute() else (target / path)


def _print_summary(result: RunResult) -> None:
    if not result.enabled:
        console.print(f"[yellow]Configuration {escape(result.configuration.name)} is disabled; nothing to do.[/yellow]")
        return
    if result.report is not None:
        console.print(f"[bold]Dry run:[/bold] {escape(result.configuration.name)}")
        if result.report.previews:
            console.print(result.report.render(), markup=False, highlight=False)
        else:
            console.print("[dim]No tasks scheduled.[/dim]")
        if result.report.errors:
            console.print(f"[yellow]{len(result.report.errors)} task preview(s) failed[/yellow]")
        return
    console.print(f"[green]✓ Completed {len(result.completed)} task(s)[/green]")
    if result.skipped:
        console.print(f"[dim]Skipped: {', '.join(result.skipped)}[/dim]")
    if result.failed:
        console.print(f"[yellow]Optional tasks failed: {', '.join(result.failed)}[/yellow]")


@cli.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", help="Task configuration file."),
    target: Path = typer.Option(Path("."), "--target", "-t", help="Directory to scaffold into."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview changes without writing anything."),
    force: bool = typer.Option(False, "--force", help="Re-run even if the target was already initialised."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept prompt defaults without asking."),
    assignments: list[str] = typer.Option([], "--set", help="Pre-answer a prompt: id=value (repeatable)."),
    plugin: list[str] = typer.Option([], "--plugin", help="Extra plugin module to load (repeatable)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
) -> None:
    """Run (or preview) the tasks of a configuration."""
    target = target.expanduser().resolve()
    try:
        settings = _settings(target, verbose, quiet)
        answers = _parse_assignments(assignments)
        state = load_state(target)
        if state is not None and not (force or dry_run or yes):
            console.print(
                f"[yellow]{escape(str(target))} was initialised with {escape(state.config)} "
                f"at {escape(state.initialized_at)}.[/yellow]"
            )
            if not typer.confirm("Run again?", default=False):
                console.print("Aborted.")
                raise typer.Exit(0)
        options = RunOptions(
            config_path=_config_path(config, target, settings),
            target=target,
            dry_run=dry_run,
            assume_yes=yes,
            interactive=sys.stdin.isatty() and not yes,
            answers=dict(answers),
            exec_timeout=settings.exec_timeout,
            plugins=(*settings.plugins, *plugin),
        )
        result = asyncio.run(Scaffolder().run(options))
    except TaskExecutionError as exc:
        if exc.completed_task_ids:
            console.print(f"[dim]Completed before failure: {', '.join(exc.completed_task_ids)}[/dim]")
        raise _fail(str(exc)) from exc
    except ScaffoldxError as exc:
        raise _fail(str(exc)) from exc
    _print_summary(result)


@cli.command()
def validate(
    config: Path | None = typer.Option(None, "--config", "-c", help="Task configuration file."),
    target: Path = typer.Option(Path("."), "--target", "-t", help="Project directory."),
    plugin: list[str] = typer.Option([], "--plugin", help="Extra plugin module to load (repeatable)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Check a configuration: schema, inheritance and task configs."""
    target = target.expanduser().resolve()
    try:
        settings = _settings(target, verbose, False)
        path = _config_path(config, target, settings)
        schema = validate_file(path)
        if not schema.valid:
            console.print(f"[bold red]Schema validation failed for {escape(str(path))}:[/bold red]")
            for message in schema.errors:
                console.print(f"  - {escape(message)}")
            raise typer.Exit(1)
        scaffolder = Scaffolder()
        register_external_plugins(scaffolder.registry, (*settings.plugins, *plugin))
        configuration = asyncio.run(scaffolder.load(path))
        scaffolder.validate(configuration)
        scaffolder.plan(configuration)
    except ScaffoldxError as exc:
        raise _fail(str(exc)) from exc
    console.print(
        f"[green]✓ {escape(configuration.name)} is valid[/green] "
        f"({len(configuration.tasks)} task(s), {len(configuration.sources)} file(s))"
    )


@cli.command()
def plan(
    config: Path | None = typer.Option(None, "--config", "-c", help="Task configuration file."),
    target: Path = typer.Option(Path("."), "--target", "-t", help="Project directory."),
    output_format: PlanFormat = typer.Option(PlanFormat.TEXT, "--format", "-f", help="Output format."),
    assignments: list[str] = typer.Option([], "--set", help="Known answer: id=value (repeatable)."),
    plugin: list[str] = typer.Option([], "--plugin", help="Extra plugin module to load (repeatable)."),
) -> None:
    """Show the execution order without resolving variables or running anything."""
    target = target.expanduser().resolve()
    try:
        settings = _settings(target, False, True)
        scaffolder = Scaffolder()
        register_external_plugins(scaffolder.registry, (*settings.plugins, *plugin))
        configuration = asyncio.run(scaffolder.load(_config_path(config, target, settings)))
        scaffolder.validate(configuration)
        execution_plan = scaffolder.plan(configuration, _parse_assignments(assignments))
    except ScaffoldxError as exc:
        raise _fail(str(exc)) from exc

    payload: dict[str, Any] = {"config": configuration.name, **execution_plan.to_dict()}
    if output_format is PlanFormat.JSON:
        typer.echo(json.dumps(payload, indent=2))
        return
    if output_format is PlanFormat.YAML:
        typer.echo(yaml.safe_dump(payload, sort_keys=False), nl=False)
        return
    console.print(f"[bold]{escape(configuration.name)}[/bold] ({len(execution_plan)} task(s))")
    for index, entry in enumerate(execution_plan, start=1):
        after = f" after {', '.join(entry.task.dependencies)}" if entry.task.dependencies else ""
        console.print(
            f"  {index}. {escape(entry.task.id)} [cyan]{escape(entry.task.type)}[/cyan] "
            f"rank {entry.rank}{escape(after)}"
        )


@cli.command()
def status(
    target: Path = typer.Option(Path("."), "--target", "-t", help="Project directory."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw state record."),
) -> None:
    """Show whether the target directory was already scaffolded."""
    target = target.expanduser().resolve()
    try:
        state = load_state(target)
    except ScaffoldxError as exc:
        raise _fail(str(exc)) from exc
    if state is None:
        console.print(f"Not initialised (no {STATE_FILENAME} in {escape(str(target))})")
        return
    if as_json:
        typer.echo(json.dumps(state.to_dict(), indent=2))
        return
    console.print(f"[bold]Configuration:[/bold] {escape(state.config)}")
    console.print(f"[bold]Initialised:[/bold] {escape(state.initialized_at)}")
    console.print(f"[bold]Version:[/bold] {escape(state.version)}")
    console.print(f"[bold]Completed tasks:[/bold] {escape(', '.join(state.completed_tasks) or '-')}")


@cli.command()
def version() -> None:
    """Print the scaffoldx version."""
    typer.echo(__version__)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
