from __future__ import annotations

import json
from typing import Any

import pandas as pd

from telemetry_charts.io.schema import NOTE_COLUMNS, TIMESTAMP_FIELD
from telemetry_charts.preprocess.normalize import RawRecords, to_frame
from telemetry_charts.preprocess.time import parse_timestamps

NOTE_FIELD = "note"
REPORT_DATA_FIELD = "report_data"


def extract_note(report_data: Any) -> str:
    """Note text of a ``report_data`` payload, given as a mapping or as JSON text."""
    if isinstance(report_data, str):
        try:
            report_data = json.loads(report_data)
        except ValueError:
            return ""
    if not isinstance(report_data, dict):
        return ""
    note = report_data.get(NOTE_FIELD)
    return note if isinstance(note, str) else ""


def _empty_notes() -> pd.DataFrame:
    return pd.DataFrame(columns=list(NOTE_COLUMNS))


def build_doctor_notes(
    raw: RawRecords,
    doctor_id: str | None = None,
    timezone: str = "UTC",
) -> pd.DataFrame:
    """Doctor's notes for the patient report, newest first.

    Rows written by another doctor are dropped when ``doctor_id`` is given and
    the rows carry a ``doctor_id`` column. Blank notes are dropped. Rows whose
    ``created_at`` does not parse sort last.
    """
    frame = to_frame(raw)
    if doctor_id is not None and "doctor_id" in frame.columns:
        frame = frame.loc[frame["doctor_id"].astype(str) == str(doctor_id)]
    if frame.empty:
        return _empty_notes()

    if REPORT_DATA_FIELD in frame.columns:
        notes = frame[REPORT_DATA_FIELD].map(extract_note)
    elif NOTE_FIELD in frame.columns:
        notes = frame[NOTE_FIELD].map(lambda value: value if isinstance(value, str) else "")
    else:
        return _empty_notes()
    created_at = frame.get(TIMESTAMP_FIELD, pd.Series(None, index=frame.index, dtype=object))

    table = pd.DataFrame({TIMESTAMP_FIELD: created_at, NOTE_FIELD: notes.astype(object)})
    table = table.loc[[bool(note.strip()) for note in table[NOTE_FIELD]]]
    if table.empty:
        return _empty_notes()

    order = parse_timestamps(table[TIMESTAMP_FIELD], timezone=timezone)
    table = table.assign(_order=order).sort_values(
        "_order",
        ascending=False,
        kind="mergesort",
        na_position="last",
    )
    return table.drop(columns="_order").reset_index(drop=True)
