"""CLI — Recurrence schedule inspection."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from watcher_engine.exceptions import InvalidScheduleError
from watcher_engine.schedule import RecurrenceSchedule
from watcher_engine.timewindow import to_iso

app = typer.Typer(help="Inspect recurrence schedules.")
console = Console()


@app.command("show")
def show_schedule(
    expression: str = typer.Argument(help="Recurrence expression, e.g. 'every 5 minutes'."),
    count: int = typer.Option(2, min=1, max=50, help="Number of previous fire times to show."),
) -> None:
    """Show the cron form and the most recent fire times of a schedule."""
    try:
        schedule = RecurrenceSchedule.parse(expression)
    except InvalidScheduleError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)

    console.print(f"Cron: [cyan]{schedule.cron}[/cyan]")
    table = Table(title="Previous fire times")
    table.add_column("#", justify="right")
    table.add_column("Fire time (UTC)")
    for position, fired_at in enumerate(schedule.previous(count), start=1):
        table.add_row(str(position), to_iso(fired_at))
    console.print(table)
