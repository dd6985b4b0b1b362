"""Rich console output for the CLI."""

from __future__ import annotations

import json
from typing import Any, Sequence

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def print_fields(fields: Sequence[tuple[str, Any]], title: str | None = None) -> None:
    """Render name/value pairs as a two-column table."""
    table = Table(title=title, show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value", overflow="fold")
    for name, value in fields:
        table.add_row(name, "[dim]-[/dim]" if value is None else str(value))
    console.print(table)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str, indent=2))


def print_success(msg: str) -> None:
    console.print(f"[bold green]{msg}[/bold green]")


def print_error(msg: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {msg}")


def print_warning(msg: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")
