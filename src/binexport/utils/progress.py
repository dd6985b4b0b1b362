"""Progress reporting for long exports."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from binexport.utils.formatters import err_console


def create_progress(enabled: bool = True) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=err_console,
        disable=not enabled,
    )


@contextmanager
def flowgraph_progress(
    total: int, enabled: bool = True
) -> Generator[Callable[[int], None], None, None]:
    """Yield a per-flow-graph callback that advances a progress bar."""
    progress = create_progress(enabled)
    with progress:
        task_id = progress.add_task("Writing flow graphs", total=total)

        def advance(address: int) -> None:
            progress.update(task_id, advance=1, description=f"Flow graph {address:#x}")

        yield advance
