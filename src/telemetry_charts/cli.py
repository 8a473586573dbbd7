from __future__ import annotations

from pathlib import Path

import typer

from telemetry_charts.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from telemetry_charts.filters import LogFilter
from telemetry_charts.io.read import load_doctor_notes, load_patient_logs, load_records
from telemetry_charts.io.schema import resolve_category
from telemetry_charts.io.write import write_chart_payload
from telemetry_charts.logging import configure_logging
from telemetry_charts.pipeline.recompute import recompute
from telemetry_charts.pipeline.report import build_patient_report, filter_from_config
from telemetry_charts.series import CHART_TITLES

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path) -> AppConfig:
    return load_config(config_path)


def _resolve_filter(
    cfg: AppConfig,
    start: str | None,
    end: str | None,
    meal_type: str | None,
) -> LogFilter:
    base = filter_from_config(cfg)
    changes: dict[str, object] = {}
    if start is not None:
        changes["start_date"] = start
    if end is not None:
        changes["end_date"] = end
    if meal_type is not None:
        changes["subtype"] = meal_type
    try:
        return base.replace(**changes)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def charts(
    logs: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    category: str = typer.Option(..., help="insulin, meal, activity, sleep or stress."),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, resolve_path=True),
    start: str | None = typer.Option(None, help="First day to include (YYYY-MM-DD)."),
    end: str | None = typer.Option(None, help="Last day to include (YYYY-MM-DD)."),
    meal_type: str | None = typer.Option(None, help="Meal type filter, or 'all'."),
) -> None:
    """Build one category's chart series from a local log file or directory."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        key = resolve_category(category)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    log_filter = _resolve_filter(cfg, start=start, end=end, meal_type=meal_type)

    raw_logs = load_patient_logs(logs)
    series = recompute(
        raw_logs.get(key),
        category=key,
        log_filter=log_filter,
        timezone=cfg.time.timezone,
    )
    output_path = write_chart_payload(series, out / f"{key}.json", title=CHART_TITLES[key])
    typer.echo(f"Chart series for {key}: {len(series.labels)} day(s). Written to: {output_path}")


@app.command()
def report(
    logs: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, resolve_path=True),
    patient_id: str | None = typer.Option(None, help="Patient id (postgres input)."),
    doctor_id: str | None = typer.Option(
        None,
        envvar="TELEMETRY_CHARTS_DOCTOR_ID",
        help="Id of the doctor the patient must be assigned to (postgres input).",
    ),
    start: str | None = typer.Option(None, help="First day to include (YYYY-MM-DD)."),
    end: str | None = typer.Option(None, help="Last day to include (YYYY-MM-DD)."),
    meal_type: str | None = typer.Option(None, help="Meal type filter, or 'all'."),
    figures: bool = typer.Option(False, "--figures", help="Also write PNG chart previews."),
) -> None:
    """Write every chart payload, log table and summary for one patient."""
    configure_logging()
    cfg = _load_app_config(config)
    if figures:
        cfg.outputs.figures = True
    if cfg.input.mode == "file" and logs is None:
        raise typer.BadParameter(
            "Missing --logs. Required when input.mode='file'. "
            "Set input.mode='postgres' and pass --patient-id/--doctor-id to fetch from the store."
        )
    log_filter = _resolve_filter(cfg, start=start, end=end, meal_type=meal_type)

    try:
        raw_logs = load_records(
            logs_path=logs,
            config=cfg,
            patient_id=patient_id,
            current_doctor_id=doctor_id,
        )
        doctor_notes = load_doctor_notes(
            logs_path=logs,
            config=cfg,
            patient_id=patient_id,
            current_doctor_id=doctor_id,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (PermissionError, RuntimeError) as exc:
        # Store access denied or PostgreSQL driver missing.
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    dashboard = build_patient_report(
        raw_logs,
        out_dir=out,
        config=cfg,
        log_filter=log_filter,
        doctor_notes=doctor_notes,
        doctor_id=doctor_id,
    )
    typer.echo(
        f"Report complete. Records: {dashboard.summary['records_total']}. "
        f"Charts: {', '.join(sorted(dashboard.charts))}. Output: {out}"
    )


if __name__ == "__main__":
    app()
