from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from telemetry_charts.io.schema import CATEGORY_SCHEMAS, resolve_category

DEFAULT_TIMEZONE = "UTC"
DB_URL_ENV_VARS = ("TELEMETRY_CHARTS_DB_URL", "DATABASE_URL")


class TimeConfig(BaseModel):
    timezone: str = DEFAULT_TIMEZONE

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown IANA timezone: {value!r}") from exc
        return value


class FiltersConfig(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    subtype: str = "all"


class InputConfig(BaseModel):
    mode: Literal["file", "postgres"] = "file"
    db_url: str | None = None
    patients_table: str = "patients"
    doctor_reports_table: str = "doctor_reports"
    tables: dict[str, str] = Field(default_factory=dict)
    max_workers: int = Field(default=5, ge=1, le=32)

    @field_validator("tables")
    @classmethod
    def _known_categories(cls, value: dict[str, str]) -> dict[str, str]:
        return {resolve_category(category): table for category, table in value.items()}

    def table_for(self, category: str) -> str:
        key = resolve_category(category)
        return self.tables.get(key, CATEGORY_SCHEMAS[key].table)


class OutputsConfig(BaseModel):
    tables_format: Literal["csv", "parquet"] = "csv"
    figures: bool = False
    figures_format: str = "png"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    time: TimeConfig = Field(default_factory=TimeConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _env_db_url() -> str | None:
    for name in DB_URL_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None


def load_config(path: Path | None = None) -> AppConfig:
    if path is None or not path.exists():
        config = AppConfig()
    else:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        config = AppConfig.model_validate(data)

    config.input.db_url = config.input.db_url or _env_db_url()
    return config
