"""binexport validate: cross-check the records of a container."""

from __future__ import annotations

from pathlib import Path

import typer


def validate_cmd(
    container: Path = typer.Argument(..., help="Path to a .BinExport file"),
) -> None:
    """Decode every record and check call graph / flow graph consistency."""
    from binexport.cli.app import get_context
    from binexport.container.validator import validate_container
    from binexport.errors import BinExportError
    from binexport.utils.formatters import print_error, print_success, print_warning
    from binexport.utils.logging import bound_container

    if not container.is_file():
        print_error(f"Path not found: {container}")
        raise typer.Exit(1)

    try:
        with bound_container(str(container)), get_context().open_reader(container) as reader:
            report = validate_container(reader)
    except BinExportError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    for warning in report.warnings:
        print_warning(warning)
    for error in report.errors:
        print_error(error)

    if not report.ok:
        raise typer.Exit(1)
    print_success(f"OK: {report.flow_graphs_checked} flow graphs checked")
