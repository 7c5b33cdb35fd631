"""CLI — Template plugin listing."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from watcher_engine.templates.registry import default_registry

app = typer.Typer(help="Inspect registered watcher templates.")
console = Console()


@app.command("list")
def list_templates(
    entry_points: bool = typer.Option(
        True, "--entry-points/--builtin-only", help="Include installed plugin packages."
    ),
) -> None:
    """List template plugins that script records can refer to."""
    registry = default_registry(load_entry_points=entry_points)

    table = Table(title="Watcher Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Description")
    for template_id, description in registry.describe().items():
        table.add_row(template_id, description)
    console.print(table)
