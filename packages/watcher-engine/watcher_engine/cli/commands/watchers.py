"""CLI — Preview and run watcher tasks."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.syntax import Syntax

from watcher_engine.config import Settings
from watcher_engine.engine import WatcherEngine
from watcher_engine.exceptions import WatcherEngineError
from watcher_engine.logging import configure_logging
from watcher_engine.models import Task
from watcher_engine.request import build_search_params
from watcher_engine.results import ExecutionResult

app = typer.Typer(help="Preview and run watcher tasks.")
console = Console()


def _load_task(task_file: Path) -> Task:
    if not task_file.exists():
        console.print(f"[red]File not found: {task_file}[/red]")
        raise typer.Exit(1)
    try:
        return Task.from_file(task_file)
    except (ValueError, ValidationError) as exc:
        console.print(f"[red]Invalid task file: {exc}[/red]")
        raise typer.Exit(1)


@app.command("preview")
def preview_task(
    task_file: Path = typer.Argument(help="Path to the watcher task (JSON or YAML)."),
    async_mode: bool = typer.Option(False, "--async", help="Anchor the window to the current time."),
    json_output: bool = typer.Option(False, "--json", help="Print plain JSON."),
) -> None:
    """Print the search params a task would hand to its template."""
    task = _load_task(task_file)
    try:
        params = build_search_params(task.search_request, task.schedule, async_mode=async_mode)
    except WatcherEngineError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)

    rendered = json.dumps(params, indent=2)
    if json_output:
        typer.echo(rendered)
    else:
        console.print(Syntax(rendered, "json"))


async def _execute(settings: Settings, task: Task, async_mode: bool) -> ExecutionResult:
    engine = WatcherEngine.from_settings(settings)
    try:
        return await engine.execute(task, async_mode=async_mode)
    finally:
        await engine.close()


@app.command("run")
def run_task(
    task_file: Path = typer.Argument(help="Path to the watcher task (JSON or YAML)."),
    async_mode: bool = typer.Option(False, "--async", help="Anchor the window to the current time."),
    config_file: Path | None = typer.Option(None, "--config", help="YAML config file."),
    scripts_dir: Path | None = typer.Option(None, "--scripts", help="Directory of script records."),
) -> None:
    """Execute a task once against the configured search backend."""
    task = _load_task(task_file)
    settings = Settings.load(config_file)
    if scripts_dir is not None:
        settings.templates = settings.templates.model_copy(update={"scripts_dir": scripts_dir})
    configure_logging(settings.logging)

    try:
        result = asyncio.run(_execute(settings, task, async_mode))
    except WatcherEngineError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)

    colour = "green" if result.ok else "yellow"
    console.print(f"[{colour}]{result.status.value}:[/{colour}] {result.message}")
