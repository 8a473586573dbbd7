from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

INSULIN = "insulin"
MEAL = "meal"
ACTIVITY = "activity"
SLEEP = "sleep"
STRESS = "stress"

CATEGORIES = (INSULIN, MEAL, ACTIVITY, SLEEP, STRESS)
MEAL_TYPES = ("breakfast", "lunch", "dinner", "snacks")

TIMESTAMP_FIELD = "created_at"
DOCTOR_REPORTS_TABLE = "doctor_reports"
NOTE_COLUMNS = (TIMESTAMP_FIELD, "note")
VALUE_SUFFIX = "_value"


@dataclass(frozen=True)
class CategorySchema:
    name: str
    table: str
    numeric_fields: tuple[str, ...]
    display_fields: tuple[str, ...]
    subtype_field: str | None = None

    def value_column(self, field: str) -> str:
        return f"{field}{VALUE_SUFFIX}"

    @property
    def value_columns(self) -> tuple[str, ...]:
        return tuple(self.value_column(field) for field in self.numeric_fields)


CATEGORY_SCHEMAS: dict[str, CategorySchema] = {
    INSULIN: CategorySchema(
        name=INSULIN,
        table="insulin",
        numeric_fields=("dosage", "cbg", "cbg_pre_meal", "cbg_post_meal"),
        display_fields=(
            TIMESTAMP_FIELD,
            "dosage",
            "cbg",
            "cbg_pre_meal",
            "cbg_post_meal",
            "notes",
        ),
    ),
    MEAL: CategorySchema(
        name=MEAL,
        table="meals",
        numeric_fields=("calories", "rice_cups"),
        display_fields=(
            TIMESTAMP_FIELD,
            "meal_type",
            "calories",
            "rice_cups",
            "dish",
            "drinks",
            "notes",
        ),
        subtype_field="meal_type",
    ),
    ACTIVITY: CategorySchema(
        name=ACTIVITY,
        table="activities",
        numeric_fields=("duration",),
        display_fields=(
            TIMESTAMP_FIELD,
            "activity_type",
            "duration",
            "start_time",
            "end_time",
            "notes",
        ),
    ),
    SLEEP: CategorySchema(
        name=SLEEP,
        table="sleep",
        numeric_fields=("sleep_hours",),
        display_fields=(TIMESTAMP_FIELD, "sleep_hours", "notes"),
    ),
    STRESS: CategorySchema(
        name=STRESS,
        table="stress",
        numeric_fields=("stress_score",),
        display_fields=(TIMESTAMP_FIELD, "stress_score", "notes"),
    ),
}

CATEGORY_ALIASES = {
    "glucose": INSULIN,
    "meals": MEAL,
    "activities": ACTIVITY,
}

# Engine-owned columns added by the normalizer; everything else is source data.
ENGINE_COLUMNS = ("timestamp_ms", "timestamp", "bucket_date", "category", "subtype")


def resolve_category(value: str) -> str:
    """Map a category name or store table alias onto a canonical category."""
    key = str(value or "").strip().lower()
    key = CATEGORY_ALIASES.get(key, key)
    if key not in CATEGORY_SCHEMAS:
        allowed = ", ".join(CATEGORIES)
        raise ValueError(f"Unknown log category: {value!r}. Expected one of: {allowed}")
    return key


def schema_for(category: str) -> CategorySchema:
    return CATEGORY_SCHEMAS[resolve_category(category)]


def empty_normalized_frame(category: str) -> pd.DataFrame:
    schema = schema_for(category)
    columns = [*schema.display_fields, *ENGINE_COLUMNS, *schema.value_columns]
    return pd.DataFrame(columns=list(dict.fromkeys(columns)))
