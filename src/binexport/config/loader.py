"""Locate and load binexport.yaml, expanding ${VAR} references."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from binexport.config.defaults import CONFIG_FILE_NAMES, CONFIG_SEARCH_PATHS
from binexport.config.models import BinExportConfig
from binexport.errors import BinExportError

CONFIG_ENV_VAR = "BINEXPORT_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


class ConfigError(BinExportError):
    """The configuration file exists but is not valid."""


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        default = match.group(2)
        return os.environ.get(match.group(1), default if default is not None else "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _expand(obj: object) -> object:
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand(item) for item in obj]
    return obj


def find_config_file(explicit_path: str | Path | None = None) -> Path | None:
    """Return the config file to use: explicit path, $BINEXPORT_CONFIG, then search."""
    if explicit_path is None:
        explicit_path = os.environ.get(CONFIG_ENV_VAR) or None
    if explicit_path is not None:
        p = Path(explicit_path)
        return p if p.is_file() else None

    candidates = (d / name for d in CONFIG_SEARCH_PATHS for name in CONFIG_FILE_NAMES)
    return next((c for c in candidates if c.is_file()), None)


def load_config(path: str | Path | None = None) -> BinExportConfig:
    """Load and validate configuration, falling back to defaults."""
    config_path = find_config_file(path)
    if config_path is None:
        return BinExportConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
        return BinExportConfig.model_validate(_expand(raw))
    except (yaml.YAMLError, ValidationError) as exc:
        raise ConfigError(f"invalid configuration in {config_path}: {exc}") from exc
