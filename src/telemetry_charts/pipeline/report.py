from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Mapping

from telemetry_charts.config import AppConfig
from telemetry_charts.filters import LogFilter
from telemetry_charts.io.schema import MEAL
from telemetry_charts.io.write import write_chart_payload, write_summary, write_table
from telemetry_charts.paths import build_output_paths
from telemetry_charts.pipeline.recompute import PatientDashboard, recompute_dashboard
from telemetry_charts.preprocess.normalize import RawRecords
from telemetry_charts.preprocess.notes import build_doctor_notes
from telemetry_charts.series import CHART_TITLES
from telemetry_charts.viz.charts import plot_chart_series

LOGGER = logging.getLogger(__name__)

OVERVIEW_TITLE = "Daily Overview"


def filter_from_config(config: AppConfig) -> LogFilter:
    return LogFilter(
        start_date=config.filters.start_date,
        end_date=config.filters.end_date,
        subtype=config.filters.subtype,
    )


def _render_figures(dashboard: PatientDashboard, out_dir: Path, config: AppConfig) -> None:
    paths = build_output_paths(out_dir)
    suffix = config.outputs.figures_format
    try:
        for category, series in dashboard.charts.items():
            kind = "stacked_bar" if category == MEAL else "line"
            plot_chart_series(
                series,
                paths.figures / f"{category}.{suffix}",
                kind=kind,
                title=CHART_TITLES.get(category, category),
            )
        plot_chart_series(
            dashboard.overview,
            paths.figures / f"overview.{suffix}",
            kind="bar",
            title=OVERVIEW_TITLE,
        )
    except Exception:  # pragma: no cover
        LOGGER.exception("Failed rendering one or more chart previews")


def build_patient_report(
    logs_by_category: Mapping[str, RawRecords],
    out_dir: Path,
    config: AppConfig,
    log_filter: LogFilter | None = None,
    today: date | None = None,
    doctor_notes: RawRecords = None,
    doctor_id: str | None = None,
) -> PatientDashboard:
    """Recompute the dashboard and write charts, tables and summaries under ``out_dir``.

    ``doctor_notes`` are raw ``doctor_reports`` rows; the notes of ``doctor_id``
    land in ``tables/doctor_notes`` newest first.
    """
    paths = build_output_paths(out_dir)
    active_filter = log_filter or filter_from_config(config)
    dashboard = recompute_dashboard(
        logs_by_category,
        log_filter=active_filter,
        timezone=config.time.timezone,
        today=today,
    )

    fmt = config.outputs.tables_format
    for category, series in dashboard.charts.items():
        write_chart_payload(
            series,
            paths.charts / f"{category}.json",
            title=CHART_TITLES.get(category, category),
        )
        write_table(dashboard.tables[category], paths.tables / f"{category}.{fmt}", fmt=fmt)
        write_table(dashboard.quality[category], paths.quality / f"{category}.{fmt}", fmt=fmt)
    write_chart_payload(dashboard.overview, paths.charts / "overview.json", title=OVERVIEW_TITLE)
    write_table(dashboard.daily_summary, paths.tables / f"daily_summary.{fmt}", fmt=fmt)
    notes = build_doctor_notes(doctor_notes, doctor_id=doctor_id, timezone=config.time.timezone)
    write_table(notes, paths.tables / f"doctor_notes.{fmt}", fmt=fmt)

    write_summary(
        {
            **dashboard.summary,
            "doctor_notes": int(len(notes)),
            "timezone": config.time.timezone,
            "filter": {
                "start_date": active_filter.start_date,
                "end_date": active_filter.end_date,
                "subtype": active_filter.subtype,
            },
        },
        paths.root / "summary.json",
    )

    if config.outputs.figures:
        _render_figures(dashboard, out_dir=paths.root, config=config)
    LOGGER.info("Patient report written to %s", paths.root)
    return dashboard
