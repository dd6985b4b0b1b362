"""binexport info: show the header and Meta record of a container."""

from __future__ import annotations

from pathlib import Path

import typer


def info_cmd(
    container: Path = typer.Argument(..., help="Path to a .BinExport file"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show header and Meta fields without decoding any flow graph."""
    from binexport.cli.app import get_context
    from binexport.codec import META_FIELDS
    from binexport.errors import BinExportError
    from binexport.utils.formatters import print_error, print_fields, print_json

    if not container.is_file():
        print_error(f"Path not found: {container}")
        raise typer.Exit(1)

    try:
        with get_context().open_reader(container) as reader:
            meta = reader.meta()
            index = reader.index
    except BinExportError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    fields = [(name, getattr(meta, name)) for name in META_FIELDS]
    if meta.input_hash is not None:
        fields[1] = ("input_hash", meta.input_hash.decode("ascii", errors="backslashreplace"))
    header = [
        ("meta_offset", index.meta_offset),
        ("call_graph_offset", index.call_graph_offset),
        ("num_flow_graphs", index.num_flow_graphs),
    ]

    if as_json:
        print_json({"header": dict(header), "meta": dict(fields)})
        return
    print_fields(header, title=f"{container.name}: header")
    print_fields(fields, title="meta")
