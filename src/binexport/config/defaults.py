"""Default configuration values and search paths."""

from __future__ import annotations

from pathlib import Path

CONFIG_FILE_NAMES = [
    "binexport.yaml",
    "binexport.yml",
    ".binexport.yaml",
    ".binexport.yml",
]

CONFIG_SEARCH_PATHS = [
    Path.cwd(),
    Path.home() / ".config" / "binexport",
    Path.home(),
]

CONTAINER_SUFFIX = ".BinExport"

# Compiler/CRT helpers reported as library functions by the ELF provider.
DEFAULT_LIBRARY_PREFIXES = ["_", "deregister_", "register_", "frame_"]
