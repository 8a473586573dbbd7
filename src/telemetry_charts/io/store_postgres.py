from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import pandas as pd

from telemetry_charts.io.schema import (
    CATEGORIES,
    DOCTOR_REPORTS_TABLE,
    resolve_category,
    schema_for,
)

LOGGER = logging.getLogger(__name__)


class PatientAccessError(PermissionError):
    """Raised when a patient is not assigned to the requesting doctor."""


def _load_psycopg():
    try:
        import psycopg
        from psycopg import sql
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "psycopg is required for PostgreSQL operations. "
            "Install with: pip install 'telemetry-charts[postgres]'"
        ) from exc
    return psycopg, sql


def ensure_patient_assignment(
    db_url: str,
    patient_id: str,
    current_doctor_id: str,
    patients_table: str = "patients",
) -> None:
    psycopg, sql = _load_psycopg()
    query = sql.SQL("SELECT 1 FROM {table_name} WHERE id = %s AND doctor_id = %s").format(
        table_name=sql.Identifier(patients_table),
    )
    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cursor:
            cursor.execute(query, [patient_id, current_doctor_id])
            row = cursor.fetchone()
    if row is None:
        raise PatientAccessError(
            f"Patient {patient_id} is not assigned to doctor {current_doctor_id}"
        )


def _fetch_frame(db_url: str, query: object, params: list[str]) -> pd.DataFrame:
    psycopg, _sql = _load_psycopg()
    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
            columns = [column.name for column in (cursor.description or [])]

    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def load_category_rows_from_postgres(
    db_url: str,
    table_name: str,
    patient_id: str,
) -> pd.DataFrame:
    _psycopg, sql = _load_psycopg()
    query = sql.SQL("SELECT * FROM {table_name} WHERE patient_id = %s").format(
        table_name=sql.Identifier(table_name),
    )
    return _fetch_frame(db_url, query, [patient_id])


def load_doctor_notes_from_postgres(
    db_url: str,
    patient_id: str,
    current_doctor_id: str,
    table_name: str = DOCTOR_REPORTS_TABLE,
) -> pd.DataFrame:
    """Report rows the current doctor wrote about the patient, newest first."""
    _psycopg, sql = _load_psycopg()
    query = sql.SQL(
        "SELECT report_data, created_at, doctor_id FROM {table_name} "
        "WHERE patient_id = %s AND doctor_id = %s ORDER BY created_at DESC"
    ).format(table_name=sql.Identifier(table_name))
    return _fetch_frame(db_url, query, [patient_id, current_doctor_id])


def load_patient_logs_from_postgres(
    db_url: str,
    patient_id: str,
    current_doctor_id: str,
    categories: Sequence[str] = CATEGORIES,
    tables: dict[str, str] | None = None,
    patients_table: str = "patients",
    max_workers: int = 5,
) -> dict[str, pd.DataFrame]:
    """Fetch every requested log table for one patient of the given doctor.

    Category queries run concurrently; the result is only returned once all
    of them have finished, and any failure propagates.
    """
    ensure_patient_assignment(
        db_url=db_url,
        patient_id=patient_id,
        current_doctor_id=current_doctor_id,
        patients_table=patients_table,
    )
    resolved = [resolve_category(category) for category in categories]
    table_names = {
        category: (tables or {}).get(category, schema_for(category).table)
        for category in resolved
    }

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(resolved) or 1))) as pool:
        futures = {
            category: pool.submit(
                load_category_rows_from_postgres,
                db_url=db_url,
                table_name=table_names[category],
                patient_id=patient_id,
            )
            for category in resolved
        }
        logs = {category: future.result() for category, future in futures.items()}

    LOGGER.info(
        "Fetched logs for patient %s: %s",
        patient_id,
        ", ".join(f"{category}={len(frame)}" for category, frame in logs.items()),
    )
    return logs
