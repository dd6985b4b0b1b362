"""Root Typer application with subcommand registration."""

from __future__ import annotations

from typing import Optional

import typer

from binexport import BinExportContext, __version__

app = typer.Typer(
    name="binexport",
    help="Export and inspect .BinExport call graph / flow graph containers",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Shared state across commands
_ctx = BinExportContext()


def get_context() -> BinExportContext:
    return _ctx


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"binexport {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", "-C", help="Path to binexport.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=_version_callback, is_eager=True
    ),
) -> None:
    """Export and inspect .BinExport containers."""
    from binexport.config.loader import ConfigError, load_config
    from binexport.utils.formatters import print_error
    from binexport.utils.logging import setup_logging

    try:
        _ctx.config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise typer.Exit(2)
    log_cfg = _ctx.config.logging
    setup_logging(level="DEBUG" if verbose else log_cfg.level, json_output=log_cfg.json_output)


# -- Subcommand registration --
from binexport.cli.export import export_cmd  # noqa: E402
from binexport.cli.info import info_cmd  # noqa: E402
from binexport.cli.validate import validate_cmd  # noqa: E402

app.command(name="export")(export_cmd)
app.command(name="info")(info_cmd)
app.command(name="validate")(validate_cmd)
