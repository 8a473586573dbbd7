from __future__ import annotations

from datetime import date

import pandas as pd

BUCKET_COLUMN = "bucket_date"


def bucket_keys(timestamps: pd.Series, timezone: str) -> pd.Series:
    """Calendar day of each tz-aware timestamp in the viewer ``timezone``."""
    return timestamps.dt.tz_convert(timezone).dt.date


def format_bucket_label(day: date) -> str:
    """Short US display label, e.g. ``1/2/2024`` (no zero padding)."""
    return f"{day.month}/{day.day}/{day.year}"


def bucket_by_day(frame: pd.DataFrame) -> dict[date, pd.DataFrame]:
    """Group normalized rows by calendar day.

    Buckets are sparse: only days with at least one row get a key. Keys come
    back in ascending order and each bucket keeps the input row order.
    """
    if frame.empty:
        return {}
    return {
        day: bucket.copy()
        for day, bucket in frame.groupby(BUCKET_COLUMN, sort=True, dropna=True)
    }
