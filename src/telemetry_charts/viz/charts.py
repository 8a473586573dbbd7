from __future__ import annotations

from pathlib import Path
from typing import Literal

import matplotlib.pyplot as plt
import numpy as np

from telemetry_charts.series import ChartSeries

ChartKind = Literal["line", "bar", "stacked_bar"]


def save_figure(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    return path


def plot_chart_series(
    series: ChartSeries,
    output_path: Path,
    kind: ChartKind = "line",
    title: str = "",
) -> Path:
    """Static preview of a chart series; days without data are not drawn."""
    fig, ax = plt.subplots(figsize=(10, 4))
    positions = np.arange(len(series.labels))
    bottom = np.zeros(len(series.labels))
    width = 0.8 / max(len(series.datasets), 1)

    for offset, dataset in enumerate(series.datasets):
        values = np.asarray(dataset.values, dtype=float)
        if kind == "line":
            ax.plot(positions, values, marker="o", label=dataset.name, color=dataset.color)
        elif kind == "stacked_bar":
            ax.bar(positions, values, bottom=bottom, label=dataset.name, color=dataset.color)
            bottom = bottom + values
        else:
            ax.bar(
                positions + offset * width,
                values,
                width,
                label=dataset.name,
                color=dataset.color,
            )

    ax.set_xticks(positions)
    ax.set_xticklabels(series.labels, rotation=45, ha="right")
    ax.set_title(title)
    if series.datasets:
        ax.legend(loc="upper left", fontsize="small")
    if not series.labels:
        ax.text(0.5, 0.5, "No data for the selected filter", ha="center", transform=ax.transAxes)
    return save_figure(output_path)
