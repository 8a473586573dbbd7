from __future__ import annotations

import math
from typing import Callable, Iterable, Mapping

import pandas as pd

from telemetry_charts.features.buckets import BUCKET_COLUMN, bucket_by_day, format_bucket_label
from telemetry_charts.io.schema import (
    ACTIVITY,
    INSULIN,
    MEAL,
    MEAL_TYPES,
    SLEEP,
    STRESS,
    resolve_category,
    schema_for,
)

GLUCOSE_FIELDS = ("cbg", "cbg_pre_meal", "cbg_post_meal")
ACTIVITY_FIELDS = ("duration",)
SLEEP_FIELDS = ("sleep_hours",)
STRESS_FIELDS = ("stress_score",)


def mean_or_zero(values: Iterable[float | None]) -> float:
    """Arithmetic mean of the present values, ``0.0`` when there are none.

    Zero is a convention here, not a missing-value marker: check bucket
    membership before reading it as "no reading".
    """
    present = [float(value) for value in values if value is not None and not math.isnan(value)]
    if not present:
        return 0.0
    return sum(present) / len(present)


def _empty_aggregate(columns: Iterable[str]) -> pd.DataFrame:
    index = pd.Index([], name=BUCKET_COLUMN, dtype=object)
    return pd.DataFrame({column: pd.Series(dtype="float64") for column in columns}, index=index)


def _values(frame: pd.DataFrame, field: str) -> pd.Series:
    column = f"{field}_value"
    if column not in frame.columns:
        return pd.Series(float("nan"), index=frame.index, dtype="float64")
    return pd.to_numeric(frame[column], errors="coerce").astype("float64")


def _aggregate_buckets(
    frame: pd.DataFrame,
    columns: tuple[str, ...],
    reduce_bucket: Callable[[pd.DataFrame], dict[str, float | int]],
) -> pd.DataFrame:
    """Apply ``reduce_bucket`` to every day bucket; one row per non-empty day."""
    buckets = bucket_by_day(frame)
    if not buckets:
        return _empty_aggregate(columns)
    index = pd.Index(list(buckets), name=BUCKET_COLUMN, dtype=object)
    rows = [reduce_bucket(bucket) for bucket in buckets.values()]
    return pd.DataFrame(rows, index=index, columns=list(columns))


def _glucose_bucket(bucket: pd.DataFrame) -> dict[str, float | int]:
    out: dict[str, float | int] = {}
    for field in GLUCOSE_FIELDS:
        present = _values(bucket, field).dropna()
        if present.empty:
            out[field] = 0.0
            continue
        # Means stay within the observed [min, max] of the day.
        mean = mean_or_zero(present.tolist())
        out[field] = float(min(max(mean, present.min()), present.max()))
    return out


def aggregate_glucose(frame: pd.DataFrame) -> pd.DataFrame:
    """Daily mean of CBG, pre-meal CBG and post-meal CBG, each independently."""
    return _aggregate_buckets(frame, GLUCOSE_FIELDS, _glucose_bucket)


def _activity_bucket(bucket: pd.DataFrame) -> dict[str, float | int]:
    return {field: float(_values(bucket, field).sum(min_count=0)) for field in ACTIVITY_FIELDS}


def aggregate_activity(frame: pd.DataFrame) -> pd.DataFrame:
    """Total activity minutes per day."""
    return _aggregate_buckets(frame, ACTIVITY_FIELDS, _activity_bucket)


def _meal_bucket(bucket: pd.DataFrame) -> dict[str, float | int]:
    subtypes = bucket.get("subtype", pd.Series(None, index=bucket.index, dtype=object))
    return {meal_type: int((subtypes == meal_type).sum()) for meal_type in MEAL_TYPES}


def aggregate_meals(frame: pd.DataFrame) -> pd.DataFrame:
    """Meal counts per type per day.

    Days holding only unrecognised meal types still get a row of zeros.
    """
    if frame.empty:
        return _empty_aggregate(MEAL_TYPES).astype("int64")
    return _aggregate_buckets(frame, MEAL_TYPES, _meal_bucket).astype("int64")


def _last_observed(fields: tuple[str, ...]) -> Callable[[pd.DataFrame], dict[str, float | int]]:
    def _reduce(bucket: pd.DataFrame) -> dict[str, float | int]:
        # mergesort keeps input order for records sharing a timestamp.
        ordered = bucket.sort_values("timestamp_ms", kind="mergesort")
        out: dict[str, float | int] = {}
        for field in fields:
            present = _values(ordered, field).dropna()
            out[field] = float(present.iloc[-1]) if len(present) else 0.0
        return out

    return _reduce


def aggregate_sleep(frame: pd.DataFrame) -> pd.DataFrame:
    """Hours slept per day; the latest reading of the day wins."""
    return _aggregate_buckets(frame, SLEEP_FIELDS, _last_observed(SLEEP_FIELDS))


def aggregate_stress(frame: pd.DataFrame) -> pd.DataFrame:
    return _aggregate_buckets(frame, STRESS_FIELDS, _last_observed(STRESS_FIELDS))


AGGREGATORS: dict[str, Callable[[pd.DataFrame], pd.DataFrame]] = {
    INSULIN: aggregate_glucose,
    MEAL: aggregate_meals,
    ACTIVITY: aggregate_activity,
    SLEEP: aggregate_sleep,
    STRESS: aggregate_stress,
}


def aggregate_category(frame: pd.DataFrame, category: str) -> pd.DataFrame:
    return AGGREGATORS[resolve_category(category)](frame)


def build_daily_summary(frames: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """One wide row per day across categories: record counts plus every sub-series."""
    parts: list[pd.DataFrame] = []
    for category, frame in frames.items():
        name = schema_for(category).name
        aggregate = aggregate_category(frame, name).add_prefix(f"{name}_")
        counts = pd.Series(
            {day: len(bucket) for day, bucket in bucket_by_day(frame).items()},
            dtype="int64",
            name=f"{name}_records",
        )
        aggregate.insert(0, counts.name, counts.reindex(aggregate.index).fillna(0).astype("int64"))
        parts.append(aggregate)

    if not parts:
        return pd.DataFrame(columns=["date", "label"])

    summary = pd.concat(parts, axis=1, join="outer")
    summary = summary.loc[sorted(summary.index)] if len(summary) else summary
    summary = summary.fillna(0)
    for column in summary.columns:
        if column.endswith("_records") or column.split("_", 1)[-1] in MEAL_TYPES:
            summary[column] = summary[column].astype("int64")
    summary.index.name = "date"
    summary = summary.reset_index()
    summary.insert(1, "label", summary["date"].map(format_bucket_label))
    return summary
