from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from telemetry_charts.config import AppConfig
from telemetry_charts.io.schema import (
    CATEGORIES,
    CATEGORY_SCHEMAS,
    DOCTOR_REPORTS_TABLE,
    resolve_category,
)
from telemetry_charts.io.store_postgres import (
    load_doctor_notes_from_postgres,
    load_patient_logs_from_postgres,
)

LOGGER = logging.getLogger(__name__)

TABLE_SUFFIXES = (".csv", ".json", ".parquet")


def load_table(path: Path) -> pd.DataFrame:
    if path.suffix == ".parquet":
        return pd.read_parquet(path)
    if path.suffix == ".csv":
        # utf-8-sig strips BOM-prefixed headers commonly found in exported CSV files.
        # Read as text so the normalizer sees values exactly as exported.
        return pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
    if path.suffix == ".json":
        return pd.DataFrame.from_records(_read_json_rows(path))
    raise ValueError(f"Unsupported table file type: {path.suffix}")


def _read_json_rows(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "data" in data:
        data = data["data"]
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of rows in {path}")
    return data


def _category_for_name(name: str) -> str | None:
    try:
        return resolve_category(name)
    except ValueError:
        pass
    for category, schema in CATEGORY_SCHEMAS.items():
        if schema.table == name:
            return category
    return None


def _load_document(path: Path) -> dict[str, pd.DataFrame]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object keyed by log table in {path}")

    logs: dict[str, pd.DataFrame] = {}
    for name, rows in data.items():
        if name == DOCTOR_REPORTS_TABLE:
            continue
        category = _category_for_name(name)
        if category is None:
            LOGGER.warning("Ignoring unknown log table %r in %s", name, path)
            continue
        if not isinstance(rows, list):
            raise ValueError(f"Log table {name!r} in {path} must be a list of rows")
        logs[category] = pd.DataFrame.from_records(rows)
    return logs


def _load_directory(path: Path) -> dict[str, pd.DataFrame]:
    logs: dict[str, pd.DataFrame] = {}
    for table_path in sorted(path.iterdir()):
        if table_path.suffix not in TABLE_SUFFIXES or table_path.stem == DOCTOR_REPORTS_TABLE:
            continue
        category = _category_for_name(table_path.stem)
        if category is None:
            LOGGER.warning("Ignoring unknown log table file %s", table_path)
            continue
        logs[category] = load_table(table_path)
    return logs


def load_patient_logs(path: Path) -> dict[str, pd.DataFrame]:
    """Load one patient's raw logs from a JSON document or a directory of tables.

    The JSON form is ``{"insulin": [...], "meals": [...], ...}``; a directory
    holds one ``<table>.csv``/``.json``/``.parquet`` file per table. Keys and
    file stems may be categories or store table names.
    """
    if path.is_dir():
        logs = _load_directory(path)
    elif path.suffix == ".json":
        logs = _load_document(path)
    else:
        category = _category_for_name(path.stem)
        if category is None:
            raise ValueError(f"Cannot infer log category from file name: {path.name}")
        logs = {category: load_table(path)}

    LOGGER.info(
        "Loaded logs from %s: %s",
        path,
        ", ".join(f"{category}={len(frame)}" for category, frame in sorted(logs.items())) or "none",
    )
    return logs


def load_doctor_reports(path: Path) -> pd.DataFrame:
    """Raw ``doctor_reports`` rows stored next to a patient's logs; empty when absent."""
    if path.is_dir():
        for table_path in sorted(path.iterdir()):
            if table_path.stem == DOCTOR_REPORTS_TABLE and table_path.suffix in TABLE_SUFFIXES:
                return load_table(table_path)
        return pd.DataFrame()
    if path.stem == DOCTOR_REPORTS_TABLE:
        return load_table(path)
    if path.suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        rows = data.get(DOCTOR_REPORTS_TABLE) if isinstance(data, dict) else None
        if isinstance(rows, list):
            return pd.DataFrame.from_records(rows)
    return pd.DataFrame()


def _require_store_access(
    config: AppConfig,
    patient_id: str | None,
    current_doctor_id: str | None,
) -> str:
    if not config.input.db_url:
        raise ValueError("input.db_url must be set when input.mode is 'postgres'")
    if not patient_id or not current_doctor_id:
        raise ValueError("patient_id and current_doctor_id are required for postgres input")
    return config.input.db_url


def load_records(
    logs_path: Path | None,
    config: AppConfig,
    patient_id: str | None = None,
    current_doctor_id: str | None = None,
) -> dict[str, pd.DataFrame]:
    """Load raw logs from files or PostgreSQL depending on ``input.mode``."""
    if config.input.mode == "postgres":
        db_url = _require_store_access(config, patient_id, current_doctor_id)
        return load_patient_logs_from_postgres(
            db_url=db_url,
            patient_id=patient_id,
            current_doctor_id=current_doctor_id,
            tables={category: config.input.table_for(category) for category in CATEGORIES},
            patients_table=config.input.patients_table,
            max_workers=config.input.max_workers,
        )

    if logs_path is None:
        raise ValueError("logs_path is required when input.mode is 'file'")
    return load_patient_logs(logs_path)


def load_doctor_notes(
    logs_path: Path | None,
    config: AppConfig,
    patient_id: str | None = None,
    current_doctor_id: str | None = None,
) -> pd.DataFrame:
    """Load the raw doctor report rows that go with ``load_records``."""
    if config.input.mode == "postgres":
        db_url = _require_store_access(config, patient_id, current_doctor_id)
        return load_doctor_notes_from_postgres(
            db_url=db_url,
            patient_id=patient_id,
            current_doctor_id=current_doctor_id,
            table_name=config.input.doctor_reports_table,
        )

    if logs_path is None:
        raise ValueError("logs_path is required when input.mode is 'file'")
    return load_doctor_reports(logs_path)
