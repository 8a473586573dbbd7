from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Sequence

import pandas as pd

from telemetry_charts.features.buckets import format_bucket_label
from telemetry_charts.io.schema import (
    ACTIVITY,
    INSULIN,
    MEAL,
    MEAL_TYPES,
    SLEEP,
    STRESS,
    resolve_category,
)


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    column: str
    color: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class ChartDataset:
    name: str
    values: list[float | int]
    color: str | None = None


@dataclass(frozen=True)
class ChartSeries:
    labels: list[str] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)
    datasets: list[ChartDataset] = field(default_factory=list)

    def dataset(self, name: str) -> ChartDataset:
        for dataset in self.datasets:
            if dataset.name == name:
                return dataset
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        """Payload in the shape chart libraries consume (labels + datasets)."""
        return {
            "labels": list(self.labels),
            "dates": [day.isoformat() for day in self.dates],
            "datasets": [
                {"label": dataset.name, "data": list(dataset.values), "color": dataset.color}
                for dataset in self.datasets
            ],
        }


CHART_DEFINITIONS: dict[str, tuple[DatasetSpec, ...]] = {
    INSULIN: (
        DatasetSpec("CBG", "cbg", "#007b55"),
        DatasetSpec("Pre-Meal CBG", "cbg_pre_meal", "#FF9900"),
        DatasetSpec("Post-Meal CBG", "cbg_post_meal", "#3366CC"),
    ),
    ACTIVITY: (DatasetSpec("Total Duration (minutes)", "duration", "#34a853"),),
    MEAL: (
        DatasetSpec("Breakfast", "breakfast", "#FFD700"),
        DatasetSpec("Lunch", "lunch", "#FF8C00"),
        DatasetSpec("Dinner", "dinner", "#FF4500"),
        DatasetSpec("Snacks", "snacks", "#32CD32"),
    ),
    SLEEP: (DatasetSpec("Hours Slept", "sleep_hours", "#6A5ACD"),),
    STRESS: (DatasetSpec("Stress Score", "stress_score", "#DC3545"),),
}

CHART_TITLES: dict[str, str] = {
    INSULIN: "Blood Sugar Levels",
    ACTIVITY: "Physical Activities (Duration per Day)",
    MEAL: "Meals per Day",
    SLEEP: "Sleep",
    STRESS: "Stress",
}

OVERVIEW_SPECS: tuple[DatasetSpec, ...] = (
    DatasetSpec("CBG", "cbg", "#007b55", source=INSULIN),
    DatasetSpec("Total Duration (minutes)", "duration", "#34a853", source=ACTIVITY),
    DatasetSpec("Meals", "meals_total", "#FF8C00", source=MEAL),
)


def specs_for(category: str) -> tuple[DatasetSpec, ...]:
    key = resolve_category(category)
    return tuple(
        DatasetSpec(spec.name, spec.column, spec.color, source=key)
        for spec in CHART_DEFINITIONS[key]
    )


def _label_dates(
    aggregates: Mapping[str, pd.DataFrame],
    specs: Sequence[DatasetSpec],
) -> list[date]:
    days: set[date] = set()
    for source in dict.fromkeys(spec.source for spec in specs):
        frame = aggregates.get(source) if source is not None else None
        if frame is None or frame.empty:
            continue
        days.update(frame.index)
    # Sorting date objects orders by calendar value, not by display string.
    return sorted(days)


def _aligned_values(frame: pd.DataFrame | None, column: str, days: list[date]) -> list[float | int]:
    if frame is None or frame.empty or column not in frame.columns:
        return [0] * len(days)
    return frame[column].reindex(days, fill_value=0).tolist()


def assemble_series(
    aggregates: Mapping[str, pd.DataFrame],
    specs: Sequence[DatasetSpec],
) -> ChartSeries:
    """Align per-day aggregates from one or more categories into a chart series.

    Labels are the ascending union of days present in any referenced
    aggregate; a dataset without a value for a labelled day gets ``0``.
    """
    days = _label_dates(aggregates, specs)
    datasets = [
        ChartDataset(
            name=spec.name,
            values=_aligned_values(
                aggregates.get(spec.source) if spec.source is not None else None,
                spec.column,
                days,
            ),
            color=spec.color,
        )
        for spec in specs
    ]
    return ChartSeries(
        labels=[format_bucket_label(day) for day in days],
        dates=days,
        datasets=datasets,
    )


def assemble_category_series(aggregate: pd.DataFrame, category: str) -> ChartSeries:
    key = resolve_category(category)
    return assemble_series({key: aggregate}, specs_for(key))


def with_meal_totals(aggregate: pd.DataFrame) -> pd.DataFrame:
    working = aggregate.copy()
    present = [column for column in MEAL_TYPES if column in working.columns]
    working["meals_total"] = working[present].sum(axis=1).astype("int64") if present else 0
    return working
