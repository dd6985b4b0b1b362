"""BinExport: call graph and flow graph containers for disassembled binaries."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from binexport.version import __version__

if TYPE_CHECKING:
    from binexport.config.models import BinExportConfig
    from binexport.container.reader import ContainerReader


@dataclass
class BinExportContext:
    """Shared state for CLI commands."""

    config: BinExportConfig | None = None

    def ensure_config(self) -> BinExportConfig:
        if self.config is None:
            from binexport.config.loader import load_config

            self.config = load_config()
        return self.config

    def open_reader(self, path: str | Path) -> ContainerReader:
        from binexport.container.reader import ContainerReader

        cfg = self.ensure_config()
        return ContainerReader.open(path, strict_markup=cfg.reader.strict_markup)


__all__ = ["BinExportContext", "__version__"]
