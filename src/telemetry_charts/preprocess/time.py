from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

EPOCH = pd.Timestamp(0, tz="UTC")
ONE_MILLISECOND = pd.Timedelta(milliseconds=1)

EPOCH_MS_PATTERN = re.compile(r"[+-]?\d+")
# Store exports are ISO 8601; hand-entered logs use `m/d/YYYY h:mm AM/PM`.
TEXT_FORMATS = ("ISO8601", "%m/%d/%Y %I:%M %p")


def _from_epoch_ms(value: int) -> pd.Timestamp:
    return pd.Timestamp(value, unit="ms", tz="UTC")


def _parse_text(text: str) -> pd.Timestamp:
    if EPOCH_MS_PATTERN.fullmatch(text):
        return _from_epoch_ms(int(text))
    # pandas resolves words like "now" and "today" to the wall clock.
    if not any(char.isdigit() for char in text):
        return pd.NaT
    for fmt in TEXT_FORMATS:
        parsed = pd.to_datetime(text, format=fmt, errors="coerce")
        if not pd.isna(parsed):
            return parsed
    return pd.NaT


def _parse_one(value: Any, timezone: str) -> pd.Timestamp:
    if value is None or isinstance(value, (bool, np.bool_)):
        return pd.NaT
    try:
        if isinstance(value, numbers.Real):
            # Numeric inputs are epoch milliseconds, the unit used by the log store clients.
            if not math.isfinite(value):
                return pd.NaT
            parsed = _from_epoch_ms(int(value))
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return pd.NaT
            parsed = _parse_text(text)
        elif isinstance(value, (datetime, date, np.datetime64)):
            parsed = pd.Timestamp(value)
        else:
            return pd.NaT
    except (ValueError, TypeError, OverflowError):
        return pd.NaT
    if pd.isna(parsed):
        return pd.NaT

    if parsed.tzinfo is None:
        try:
            parsed = parsed.tz_localize(timezone, nonexistent="shift_forward", ambiguous=True)
        except (ValueError, TypeError, OverflowError):
            return pd.NaT
    return parsed.tz_convert("UTC")


def parse_timestamps(values: pd.Series, timezone: str) -> pd.Series:
    """Parse mixed timestamp values into tz-aware timestamps in ``timezone``.

    Accepted values are ISO 8601 strings, ``m/d/YYYY h:mm AM/PM`` strings,
    datetime objects, and epoch milliseconds given as numbers or digit
    strings. Naive values are read as wall-clock time in ``timezone``; values
    carrying an offset are converted to it. Anything else, including relative
    words such as ``"now"``, becomes ``NaT`` so callers can drop it.
    """
    if values.empty:
        return pd.Series(pd.DatetimeIndex([], tz=timezone), index=values.index)
    parsed = values.map(lambda value: _parse_one(value, timezone))
    utc = pd.to_datetime(parsed, utc=True, errors="coerce")
    return utc.dt.tz_convert(timezone)


def to_epoch_ms(timestamps: pd.Series) -> pd.Series:
    return ((timestamps - EPOCH) // ONE_MILLISECOND).astype("int64")


def today_in(timezone: str) -> date:
    return pd.Timestamp.now(tz=timezone).date()
