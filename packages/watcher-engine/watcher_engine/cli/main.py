"""Watcher Engine CLI — Entry point.

Usage:
    watcher-engine schedule show "every 5 minutes" [--count 5]
    watcher-engine watchers preview <task.json> [--async]
    watcher-engine watchers run <task.json> [--async] [--config FILE] [--scripts DIR]
    watcher-engine templates list
"""

from __future__ import annotations

import typer

from watcher_engine.cli.commands import schedule, templates, watchers

app = typer.Typer(
    name="watcher-engine",
    help="Watcher Engine — run scheduled search watchers against a search backend.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

app.add_typer(schedule.app, name="schedule")
app.add_typer(watchers.app, name="watchers")
app.add_typer(templates.app, name="templates")


@app.callback()
def main_callback() -> None:
    pass


if __name__ == "__main__":
    app()
