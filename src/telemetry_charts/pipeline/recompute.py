from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

import pandas as pd

from telemetry_charts.config import DEFAULT_TIMEZONE
from telemetry_charts.features.aggregates import aggregate_category, build_daily_summary
from telemetry_charts.filters import LogFilter, apply_filters, build_log_table
from telemetry_charts.io.schema import MEAL, resolve_category
from telemetry_charts.preprocess.normalize import (
    RawRecords,
    build_data_quality,
    merge_by_category,
    normalize_records,
)
from telemetry_charts.preprocess.time import today_in
from telemetry_charts.series import (
    OVERVIEW_SPECS,
    ChartSeries,
    assemble_category_series,
    assemble_series,
    with_meal_totals,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatientDashboard:
    charts: dict[str, ChartSeries]
    tables: dict[str, pd.DataFrame]
    quality: dict[str, pd.DataFrame]
    overview: ChartSeries
    daily_summary: pd.DataFrame
    summary: dict[str, Any] = field(default_factory=dict)


def filtered_records(
    raw: RawRecords,
    category: str,
    log_filter: LogFilter | None = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> pd.DataFrame:
    normalized = normalize_records(raw, category=category, timezone=timezone)
    return apply_filters(normalized, log_filter, category=category)


def recompute(
    raw: RawRecords,
    category: str,
    log_filter: LogFilter | None = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> ChartSeries:
    """Raw rows for one category -> chart series, under the given filter.

    Pure and synchronous: the same rows and filter always give the same series.
    """
    key = resolve_category(category)
    filtered = filtered_records(raw, key, log_filter=log_filter, timezone=timezone)
    return assemble_category_series(aggregate_category(filtered, key), key)


def _build_summary(
    filtered: Mapping[str, pd.DataFrame],
    today: date,
) -> dict[str, Any]:
    records = {category: int(len(frame)) for category, frame in filtered.items()}
    days = sorted(
        {day for frame in filtered.values() if not frame.empty for day in frame["bucket_date"]}
    )
    logs_today = sum(
        int((frame["bucket_date"] == today).sum())
        for frame in filtered.values()
        if not frame.empty
    )
    return {
        "records": records,
        "records_total": sum(records.values()),
        "logs_today": logs_today,
        "today": today.isoformat(),
        "days_with_data": len(days),
        "first_date": days[0].isoformat() if days else None,
        "last_date": days[-1].isoformat() if days else None,
    }


def recompute_dashboard(
    logs_by_category: Mapping[str, RawRecords],
    log_filter: LogFilter | None = None,
    timezone: str = DEFAULT_TIMEZONE,
    today: date | None = None,
) -> PatientDashboard:
    """Rebuild every chart, table and summary for one patient from scratch.

    Keys may be categories or table aliases; rows under aliases of the same
    category are combined.
    """
    filtered: dict[str, pd.DataFrame] = {}
    quality: dict[str, pd.DataFrame] = {}
    aggregates: dict[str, pd.DataFrame] = {}
    charts: dict[str, ChartSeries] = {}
    tables: dict[str, pd.DataFrame] = {}

    for key, raw in merge_by_category(logs_by_category).items():
        normalized = normalize_records(raw, category=key, timezone=timezone)
        quality[key] = build_data_quality(raw, normalized, category=key)
        filtered[key] = apply_filters(normalized, log_filter, category=key)
        aggregates[key] = aggregate_category(filtered[key], key)
        charts[key] = assemble_category_series(aggregates[key], key)
        tables[key] = build_log_table(filtered[key], key)
        LOGGER.debug(
            "Recomputed %s: %d rows kept, %d days", key, len(filtered[key]), len(aggregates[key])
        )

    if MEAL in aggregates:
        aggregates[MEAL] = with_meal_totals(aggregates[MEAL])
    overview = assemble_series(aggregates, OVERVIEW_SPECS)

    return PatientDashboard(
        charts=charts,
        tables=tables,
        quality=quality,
        overview=overview,
        daily_summary=build_daily_summary(filtered),
        summary=_build_summary(filtered, today=today or today_in(timezone)),
    )


class DashboardController:
    """Holds one patient's records and filter; any change recomputes everything.

    There is no incremental state: each update replaces ``dashboard`` with a
    fresh ``recompute_dashboard`` result.
    """

    def __init__(
        self,
        logs_by_category: Mapping[str, RawRecords] | None = None,
        log_filter: LogFilter | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.timezone = timezone
        self.log_filter = log_filter or LogFilter()
        self._logs: dict[str, list[dict[str, Any]]] = {
            category: _as_rows(frame)
            for category, frame in merge_by_category(logs_by_category or {}).items()
        }
        self.dashboard = self.recompute()

    def recompute(self) -> PatientDashboard:
        self.dashboard = recompute_dashboard(
            self._logs,
            log_filter=self.log_filter,
            timezone=self.timezone,
        )
        return self.dashboard

    def set_filter(self, **changes: Any) -> PatientDashboard:
        self.log_filter = self.log_filter.replace(**changes)
        return self.recompute()

    def add_records(self, category: str, rows: RawRecords) -> PatientDashboard:
        key = resolve_category(category)
        self._logs.setdefault(key, []).extend(_as_rows(rows))
        return self.recompute()


def _as_rows(raw: RawRecords) -> list[dict[str, Any]]:
    if raw is None:
        return []
    if isinstance(raw, pd.DataFrame):
        return raw.to_dict(orient="records")
    return [dict(row) for row in raw]
