"""Pydantic configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from binexport.config.defaults import DEFAULT_LIBRARY_PREFIXES


class ExportConfig(BaseModel):
    library_prefixes: list[str] = Field(default_factory=lambda: list(DEFAULT_LIBRARY_PREFIXES))
    address_space: int | None = None
    progress: bool = True

    @field_validator("address_space")
    @classmethod
    def _check_address_space(cls, value: int | None) -> int | None:
        if value is not None and value not in (16, 32, 64):
            raise ValueError("address_space must be 16, 32 or 64")
        return value


class ReaderConfig(BaseModel):
    strict_markup: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class BinExportConfig(BaseModel):
    export: ExportConfig = Field(default_factory=ExportConfig)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
