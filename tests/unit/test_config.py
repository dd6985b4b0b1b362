"""Tests for configuration loading."""

import pytest
import yaml

from binexport.config.loader import ConfigError, _interpolate_env, find_config_file, load_config
from binexport.config.models import BinExportConfig, ExportConfig


def test_default_config():
    config = BinExportConfig()
    assert config.export.address_space is None
    assert config.export.progress is True
    assert "_" in config.export.library_prefixes
    assert config.reader.strict_markup is False
    assert config.logging.level == "INFO"


def test_env_interpolation(monkeypatch):
    monkeypatch.setenv("TEST_VAR_BX", "hello")
    assert _interpolate_env("${TEST_VAR_BX}") == "hello"


def test_env_interpolation_default(monkeypatch):
    monkeypatch.delenv("NONEXISTENT_VAR_BX", raising=False)
    assert _interpolate_env("${NONEXISTENT_VAR_BX:fallback}") == "fallback"
    assert _interpolate_env("${NONEXISTENT_VAR_BX}") == ""


def test_load_config_from_file(tmp_path, monkeypatch):
    monkeypatch.setenv("BX_LEVEL", "DEBUG")
    path = tmp_path / "binexport.yaml"
    path.write_text(
        yaml.dump(
            {
                "export": {"address_space": 32, "library_prefixes": ["__"]},
                "reader": {"strict_markup": True},
                "logging": {"level": "${BX_LEVEL:INFO}"},
            }
        )
    )
    config = load_config(path)
    assert config.export.address_space == 32
    assert config.export.library_prefixes == ["__"]
    assert config.reader.strict_markup is True
    assert config.logging.level == "DEBUG"
    # untouched sections keep their defaults
    assert config.export.progress is True


def test_load_config_from_env_var(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("reader:\n  strict_markup: true\n")
    monkeypatch.setenv("BINEXPORT_CONFIG", str(path))
    assert find_config_file() == path
    assert load_config().reader.strict_markup is True


def test_load_config_missing_file():
    assert load_config("/nonexistent/path.yaml") == BinExportConfig()


def test_empty_config_file(tmp_path):
    path = tmp_path / "binexport.yaml"
    path.write_text("")
    assert load_config(path) == BinExportConfig()


def test_invalid_config(tmp_path):
    path = tmp_path / "binexport.yaml"
    path.write_text("export:\n  address_space: 48\n")
    with pytest.raises(ConfigError, match="address_space"):
        load_config(path)

    path.write_text("export: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_address_space_validation():
    assert ExportConfig(address_space=16).address_space == 16
    with pytest.raises(ValueError):
        ExportConfig(address_space=8)
