from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd

from telemetry_charts.io.schema import schema_for

ALL_SUBTYPES = "all"


def parse_date(value: date | datetime | str | None) -> date | None:
    """Parse a filter bound; accepts ``YYYY-MM-DD`` and ``M/D/YYYY`` strings."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid filter date {value!r}; expected YYYY-MM-DD or M/D/YYYY")


@dataclass(frozen=True)
class LogFilter:
    start_date: date | None = None
    end_date: date | None = None
    subtype: str | None = ALL_SUBTYPES

    @classmethod
    def from_values(
        cls,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        subtype: str | None = ALL_SUBTYPES,
    ) -> "LogFilter":
        return cls(
            start_date=parse_date(start_date),
            end_date=parse_date(end_date),
            subtype=subtype,
        )

    @property
    def subtype_key(self) -> str | None:
        if self.subtype is None:
            return None
        key = str(self.subtype).strip().casefold()
        if not key or key == ALL_SUBTYPES:
            return None
        return key

    def replace(self, **changes: object) -> "LogFilter":
        values = {
            "start_date": self.start_date,
            "end_date": self.end_date,
            "subtype": self.subtype,
        }
        values.update(changes)
        return LogFilter.from_values(**values)  # type: ignore[arg-type]


def filter_mask(frame: pd.DataFrame, log_filter: LogFilter, category: str) -> pd.Series:
    mask = pd.Series(True, index=frame.index, dtype=bool)
    if frame.empty:
        return mask

    # Both bounds are inclusive calendar days in the viewer time zone.
    if log_filter.start_date is not None:
        mask &= frame["bucket_date"].map(lambda day: day >= log_filter.start_date).astype(bool)
    if log_filter.end_date is not None:
        mask &= frame["bucket_date"].map(lambda day: day <= log_filter.end_date).astype(bool)

    subtype_key = log_filter.subtype_key
    if subtype_key is not None and schema_for(category).subtype_field is not None:
        subtypes = frame["subtype"].map(
            lambda value: value.casefold() if isinstance(value, str) else None
        )
        mask &= (subtypes == subtype_key).astype(bool)
    return mask


def apply_filters(
    frame: pd.DataFrame,
    log_filter: LogFilter | None,
    category: str,
) -> pd.DataFrame:
    """Keep rows passing the date range and subtype filter, preserving input order."""
    if log_filter is None:
        return frame.copy()
    return frame.loc[filter_mask(frame, log_filter, category)].reset_index(drop=True)


def build_log_table(filtered: pd.DataFrame, category: str) -> pd.DataFrame:
    """Chronological, display-ready rows using the store's original field names."""
    schema = schema_for(category)
    if filtered.empty:
        return pd.DataFrame(columns=list(schema.display_fields))

    ordered = filtered.sort_values("timestamp_ms", kind="mergesort")
    table = pd.DataFrame(index=ordered.index)
    for column in schema.display_fields:
        table[column] = ordered[column] if column in ordered.columns else None
    return table.reset_index(drop=True)
