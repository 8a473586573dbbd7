from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    charts: Path
    tables: Path
    quality: Path
    figures: Path


def build_output_paths(out_dir: Path) -> OutputPaths:
    paths = OutputPaths(
        root=out_dir,
        charts=out_dir / "charts",
        tables=out_dir / "tables",
        quality=out_dir / "quality",
        figures=out_dir / "figures",
    )
    for path in (paths.root, paths.charts, paths.tables, paths.quality, paths.figures):
        path.mkdir(parents=True, exist_ok=True)
    return paths
