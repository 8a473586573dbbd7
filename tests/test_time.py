from __future__ import annotations

from datetime import datetime

import pandas as pd

from telemetry_charts.preprocess.time import parse_timestamps, to_epoch_ms


def test_parse_timestamps_handles_naive_aware_numeric_and_invalid_values() -> None:
    values = pd.Series(
        [
            "2024-01-01T10:00:00",
            "2024-01-01T23:30:00Z",
            1704067200000,
            "2/3/2026 5:07 PM",
            "not a date",
            None,
            "",
            float("nan"),
        ],
        dtype=object,
    )
    out = parse_timestamps(values, timezone="Asia/Manila")

    assert str(out.dt.tz) == "Asia/Manila"
    assert out.iloc[0] == pd.Timestamp("2024-01-01 10:00", tz="Asia/Manila")
    assert out.iloc[1] == pd.Timestamp("2024-01-02 07:30", tz="Asia/Manila")
    assert out.iloc[2] == pd.Timestamp("2024-01-01 08:00", tz="Asia/Manila")
    assert out.iloc[3] == pd.Timestamp("2026-02-03 17:07", tz="Asia/Manila")
    assert out.iloc[4:].isna().all()


def test_parse_timestamps_on_empty_series_keeps_timezone() -> None:
    out = parse_timestamps(pd.Series([], dtype=object), timezone="UTC")
    assert out.empty
    assert str(out.dt.tz) == "UTC"


def test_to_epoch_ms_is_unit_independent() -> None:
    stamps = pd.Series(
        [pd.Timestamp("2024-01-01T00:00:00Z"), pd.Timestamp("2024-01-01T08:00:00.250Z")]
    )
    assert to_epoch_ms(stamps).tolist() == [1704067200000, 1704096000250]


def test_parse_timestamps_rejects_relative_words() -> None:
    values = pd.Series(["now", "today", "yesterday", "tomorrow 8am", "NaT"], dtype=object)
    out = parse_timestamps(values, timezone="UTC")
    assert out.isna().all()


def test_parse_timestamps_reads_digit_strings_as_epoch_ms() -> None:
    values = pd.Series(["1704096000000", " 1704096000000 ", "-1000", "17040960000001234567"])
    out = parse_timestamps(values, timezone="UTC")

    assert out.iloc[0] == pd.Timestamp("2024-01-01T08:00:00Z")
    assert out.iloc[1] == pd.Timestamp("2024-01-01T08:00:00Z")
    assert out.iloc[2] == pd.Timestamp("1969-12-31T23:59:59Z")
    assert pd.isna(out.iloc[3])


def test_parse_timestamps_accepts_datetime_objects() -> None:
    values = pd.Series(
        [datetime(2024, 1, 1, 8, 0), pd.Timestamp("2024-01-01T08:00:00Z"), object()],
        dtype=object,
    )
    out = parse_timestamps(values, timezone="UTC")

    assert out.iloc[0] == pd.Timestamp("2024-01-01T08:00:00Z")
    assert out.iloc[1] == pd.Timestamp("2024-01-01T08:00:00Z")
    assert pd.isna(out.iloc[2])
