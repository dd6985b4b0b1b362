"""binexport export: disassemble an ELF binary into a .BinExport container."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def export_cmd(
    binary: Path = typer.Argument(..., help="ELF binary to export"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Container path (default: <binary>.BinExport)"
    ),
) -> None:
    """Export the call graph and flow graphs of a binary."""
    from binexport.builder import ArtifactModel, GraphBuilder
    from binexport.cli.app import get_context
    from binexport.config.defaults import CONTAINER_SUFFIX
    from binexport.container.writer import write_container
    from binexport.errors import BinExportError
    from binexport.extraction.elf_loader import load_elf
    from binexport.utils.formatters import print_error, print_success
    from binexport.utils.logging import bound_container
    from binexport.utils.progress import flowgraph_progress

    cfg = get_context().ensure_config().export

    if not binary.is_file():
        print_error(f"Path not found: {binary}")
        raise typer.Exit(1)

    artifact = load_elf(binary, library_prefixes=cfg.library_prefixes)
    if artifact is None:
        print_error(f"Could not disassemble {binary}")
        raise typer.Exit(1)

    out = output or binary.with_name(binary.name + CONTAINER_SUFFIX)
    builder = GraphBuilder(ArtifactModel(artifact))
    meta = builder.build_meta(
        input_binary=artifact.name,
        input_hash=artifact.input_hash,
        address_space=cfg.address_space or artifact.address_space,
        architecture=artifact.architecture,
    )
    count = builder.flowgraph_count()

    try:
        with bound_container(str(out)), flowgraph_progress(count, cfg.progress) as advance:
            write_container(
                out,
                meta,
                builder.build_callgraph(),
                builder.iter_flowgraphs(),
                num_flow_graphs=count,
                on_flowgraph=advance,
            )
    except BinExportError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    print_success(f"Wrote {out}")
    typer.echo(
        f"  {meta.num_functions} functions, {meta.num_basicblocks} basic blocks, "
        f"{meta.num_instructions} instructions, {meta.num_edges} edges"
    )
