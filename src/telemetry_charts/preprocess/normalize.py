from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from telemetry_charts.features.buckets import bucket_keys
from telemetry_charts.io.schema import (
    TIMESTAMP_FIELD,
    empty_normalized_frame,
    resolve_category,
    schema_for,
)
from telemetry_charts.preprocess.time import parse_timestamps, to_epoch_ms

LOGGER = logging.getLogger(__name__)

RawRecords = pd.DataFrame | Sequence[Mapping[str, Any]] | None


def to_frame(raw: RawRecords) -> pd.DataFrame:
    if raw is None:
        return pd.DataFrame()
    if isinstance(raw, pd.DataFrame):
        return raw.reset_index(drop=True).copy()
    return pd.DataFrame.from_records(list(raw))


def coerce_numeric(values: pd.Series) -> pd.Series:
    """Permissive numeric coercion; anything non-numeric or non-finite becomes NaN.

    NaN marks an absent reading. Zero is kept as zero.
    """
    numeric = pd.to_numeric(values.map(_drop_booleans), errors="coerce").astype("float64")
    return numeric.where(np.isfinite(numeric))


def _drop_booleans(value: Any) -> Any:
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, str):
        return value.strip()
    return value


def _normalize_subtype(values: pd.Series) -> pd.Series:
    def _clean(value: Any) -> Any:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        text = str(value).strip().lower()
        return text or None

    return values.map(_clean).astype(object)


def normalize_records(raw: RawRecords, category: str, timezone: str = "UTC") -> pd.DataFrame:
    """Turn raw log rows for one category into the engine's record frame.

    Rows whose ``created_at`` does not parse are dropped. Source columns are
    kept as-is for display; engine columns and ``<field>_value`` numerics are
    appended.
    """
    schema = schema_for(category)
    frame = to_frame(raw)
    if frame.empty or TIMESTAMP_FIELD not in frame.columns:
        if not frame.empty:
            LOGGER.debug(
                "Dropping %d %s rows without a %s column",
                len(frame),
                schema.name,
                TIMESTAMP_FIELD,
            )
        return empty_normalized_frame(schema.name)

    timestamps = parse_timestamps(frame[TIMESTAMP_FIELD], timezone=timezone)
    valid = timestamps.notna()
    dropped = int((~valid).sum())
    if dropped:
        LOGGER.debug(
            "Dropping %d %s rows with unparseable %s", dropped, schema.name, TIMESTAMP_FIELD
        )

    working = frame.loc[valid].copy()
    timestamps = timestamps.loc[valid]
    if working.empty:
        return empty_normalized_frame(schema.name)

    working["timestamp"] = timestamps
    working["timestamp_ms"] = to_epoch_ms(timestamps)
    working["bucket_date"] = bucket_keys(timestamps, timezone)
    working["category"] = schema.name
    if schema.subtype_field and schema.subtype_field in working.columns:
        working["subtype"] = _normalize_subtype(working[schema.subtype_field])
    else:
        working["subtype"] = None

    for source_field in schema.numeric_fields:
        target = schema.value_column(source_field)
        if source_field in working.columns:
            working[target] = coerce_numeric(working[source_field])
        else:
            working[target] = np.nan

    return working.reset_index(drop=True)


def _non_numeric_count(values: pd.Series) -> int:
    present = values.map(_is_present)
    numeric = coerce_numeric(values)
    return int((present & numeric.isna()).sum())


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, str) and pd.isna(value):
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def build_data_quality(raw: RawRecords, normalized: pd.DataFrame, category: str) -> pd.DataFrame:
    """Per-category data-quality counters for the report; never used to fail a run."""
    schema = schema_for(category)
    frame = to_frame(raw)
    rows_total = int(len(frame))
    rows_kept = int(len(normalized))

    metrics: list[tuple[str, int]] = [
        ("rows_total", rows_total),
        ("invalid_timestamp", rows_total - rows_kept),
        ("rows_kept", rows_kept),
    ]
    for source_field in schema.numeric_fields:
        count = 0
        if source_field in frame.columns:
            count = _non_numeric_count(frame[source_field])
        metrics.append((f"non_numeric_{source_field}", count))
    return pd.DataFrame(metrics, columns=["metric", "value"])


def merge_by_category(logs_by_category: Mapping[str, RawRecords]) -> dict[str, pd.DataFrame]:
    """Key raw logs by canonical category; aliases of one category are concatenated in order."""
    grouped: dict[str, list[pd.DataFrame]] = {}
    for category, raw in logs_by_category.items():
        grouped.setdefault(resolve_category(category), []).append(to_frame(raw))
    merged: dict[str, pd.DataFrame] = {}
    for category, frames in grouped.items():
        present = [frame for frame in frames if not frame.empty]
        if len(present) > 1:
            merged[category] = pd.concat(present, ignore_index=True)
        else:
            merged[category] = present[0] if present else frames[0]
    return merged
