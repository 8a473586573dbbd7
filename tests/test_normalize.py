from __future__ import annotations

from datetime import date

import pandas as pd

from telemetry_charts.preprocess.normalize import (
    build_data_quality,
    coerce_numeric,
    merge_by_category,
    normalize_records,
)


def _insulin_rows() -> list[dict[str, object]]:
    return [
        {"created_at": "2024-01-01T08:00:00", "cbg": "100", "notes": "fasting"},
        {"created_at": "garbage", "cbg": 130},
        {"created_at": "2024-01-01T12:00:00", "cbg": "n/a", "cbg_pre_meal": 0},
    ]


def test_normalize_records_drops_unparseable_rows_and_keeps_source_columns() -> None:
    out = normalize_records(_insulin_rows(), category="insulin", timezone="UTC")

    assert len(out) == 2
    assert out["cbg"].tolist() == ["100", "n/a"]
    assert out.loc[0, "notes"] == "fasting"
    assert out.loc[0, "timestamp_ms"] == 1704096000000
    assert out.loc[0, "bucket_date"] == date(2024, 1, 1)
    assert (out["category"] == "insulin").all()
    assert out["subtype"].isna().all()


def test_normalize_records_keeps_absent_and_zero_distinct() -> None:
    out = normalize_records(_insulin_rows(), category="insulin", timezone="UTC")

    assert out.loc[0, "cbg_value"] == 100.0
    assert pd.isna(out.loc[1, "cbg_value"])
    assert out.loc[1, "cbg_pre_meal_value"] == 0.0
    assert pd.isna(out.loc[0, "cbg_pre_meal_value"])
    assert out["dosage_value"].isna().all()


def test_normalize_records_lowercases_meal_subtype() -> None:
    rows = [
        {"created_at": "2024-01-01T08:00:00", "meal_type": " Lunch "},
        {"created_at": "2024-01-01T09:00:00", "meal_type": None},
        {"created_at": "2024-01-01T10:00:00"},
    ]
    out = normalize_records(rows, category="meals", timezone="UTC")

    assert out.loc[0, "subtype"] == "lunch"
    assert out.loc[0, "meal_type"] == " Lunch "
    assert pd.isna(out.loc[1, "subtype"])
    assert pd.isna(out.loc[2, "subtype"])
    assert (out["category"] == "meal").all()


def test_normalize_records_returns_empty_frame_for_missing_input() -> None:
    for raw in (None, [], pd.DataFrame(), [{"cbg": 120}]):
        out = normalize_records(raw, category="insulin")
        assert out.empty
        assert {"timestamp_ms", "bucket_date", "cbg_value"}.issubset(out.columns)


def test_normalize_records_accepts_dataframe_input_with_custom_index() -> None:
    frame = pd.DataFrame(
        {"created_at": ["2024-03-01T07:00:00", "2024-03-02T07:00:00"], "duration": [30, "45"]},
        index=[10, 20],
    )
    out = normalize_records(frame, category="activity")

    assert out.index.tolist() == [0, 1]
    assert out["duration_value"].tolist() == [30.0, 45.0]


def test_coerce_numeric_is_permissive() -> None:
    values = pd.Series([True, "5", None, "inf", 0, " 7.5 ", "abc"], dtype=object)
    out = coerce_numeric(values)

    assert pd.isna(out.iloc[0])
    assert out.iloc[1] == 5.0
    assert pd.isna(out.iloc[2])
    assert pd.isna(out.iloc[3])
    assert out.iloc[4] == 0.0
    assert out.iloc[5] == 7.5
    assert pd.isna(out.iloc[6])


def test_build_data_quality_counts_dropped_and_non_numeric_rows() -> None:
    raw = _insulin_rows()
    normalized = normalize_records(raw, category="insulin", timezone="UTC")
    quality = build_data_quality(raw, normalized, category="insulin")
    metrics = dict(zip(quality["metric"], quality["value"]))

    assert metrics["rows_total"] == 3
    assert metrics["invalid_timestamp"] == 1
    assert metrics["rows_kept"] == 2
    assert metrics["non_numeric_cbg"] == 1
    assert metrics["non_numeric_dosage"] == 0
    assert metrics["non_numeric_cbg_pre_meal"] == 0



def test_normalize_records_drops_relative_word_timestamps() -> None:
    rows = [
        {"created_at": "now", "cbg": 150},
        {"created_at": "today", "cbg": 160},
        {"created_at": "2024-01-01T08:00:00", "cbg": 100},
    ]
    out = normalize_records(rows, category="insulin", timezone="UTC")

    assert len(out) == 1
    assert out.loc[0, "cbg_value"] == 100.0
    assert out.loc[0, "bucket_date"] == date(2024, 1, 1)


def test_merge_by_category_concatenates_aliases_in_order() -> None:
    merged = merge_by_category(
        {
            "meal": [{"created_at": "2024-01-01T08:00:00", "meal_type": "lunch"}],
            "meals": [
                {"created_at": "2024-01-01T12:00:00", "meal_type": "lunch"},
                {"created_at": "2024-01-01T19:00:00", "meal_type": "dinner"},
            ],
            "activities": [],
        }
    )

    assert set(merged) == {"meal", "activity"}
    assert merged["meal"]["created_at"].tolist() == [
        "2024-01-01T08:00:00",
        "2024-01-01T12:00:00",
        "2024-01-01T19:00:00",
    ]
    assert merged["activity"].empty
