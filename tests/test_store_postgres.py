from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from telemetry_charts.io import store_postgres as store_module
from telemetry_charts.io.store_postgres import (
    PatientAccessError,
    ensure_patient_assignment,
    load_category_rows_from_postgres,
    load_doctor_notes_from_postgres,
    load_patient_logs_from_postgres,
)


class _FakeSQLText(str):
    def format(self, *args: object, **kwargs: object) -> "_FakeSQLText":
        text = str(self)
        for value in args:
            text = text.replace("{}", str(value), 1)
        for key, value in kwargs.items():
            text = text.replace("{" + key + "}", str(value))
        return _FakeSQLText(text)


class _FakeSQLModule:
    @staticmethod
    def SQL(text: str) -> _FakeSQLText:
        return _FakeSQLText(text)

    @staticmethod
    def Identifier(name: str) -> str:
        return f'"{name}"'


class _FakeCursor:
    def __init__(
        self,
        tables: dict[str, tuple[list[str], list[tuple[Any, ...]]]],
        assignments: set[tuple[str, str]],
    ) -> None:
        self.tables = tables
        self.assignments = assignments
        self.executed: list[tuple[str, object | None]] = []
        self.description: list[SimpleNamespace] | None = None
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, query: object, params: object | None = None) -> None:
        text = str(query)
        self.executed.append((text, params))
        if '"patients"' in text:
            assigned = tuple(params or ()) in self.assignments
            self._rows = [(1,)] if assigned else []
            self.description = [SimpleNamespace(name="?column?")]
            return
        for table_name, (columns, rows) in self.tables.items():
            if f'"{table_name}"' in text:
                self._rows = list(rows)
                self.description = [SimpleNamespace(name=column) for column in columns]
                return
        self._rows = []
        self.description = []

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._rows)

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._rows[0] if self._rows else None

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class _FakeConnection:
    def __init__(self, cursor: _FakeCursor) -> None:
        self._cursor = cursor

    def cursor(self) -> _FakeCursor:
        return self._cursor

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class _FakePsycopg:
    def __init__(
        self,
        tables: dict[str, tuple[list[str], list[tuple[Any, ...]]]] | None = None,
        assignments: set[tuple[str, str]] | None = None,
    ) -> None:
        self.tables = tables or {}
        self.assignments = assignments or set()
        self.connect_calls: list[str] = []
        self.cursors: list[_FakeCursor] = []

    def connect(self, db_url: str) -> _FakeConnection:
        self.connect_calls.append(db_url)
        cursor = _FakeCursor(self.tables, self.assignments)
        self.cursors.append(cursor)
        return _FakeConnection(cursor)

    @property
    def executed(self) -> list[tuple[str, object | None]]:
        return [entry for cursor in self.cursors for entry in cursor.executed]


def _install(monkeypatch, fake: _FakePsycopg) -> None:
    monkeypatch.setattr(store_module, "_load_psycopg", lambda: (fake, _FakeSQLModule))


def _tables() -> dict[str, tuple[list[str], list[tuple[Any, ...]]]]:
    return {
        "insulin": (
            ["id", "patient_id", "created_at", "cbg"],
            [(1, "p1", "2024-01-01T08:00:00", 100), (2, "p1", "2024-01-02T08:00:00", 90)],
        ),
        "meal_logs": (
            ["id", "patient_id", "created_at", "meal_type"],
            [(7, "p1", "2024-01-01T12:00:00", "lunch")],
        ),
        "activities": (["id", "patient_id", "created_at", "duration"], []),
    }


def test_ensure_patient_assignment_checks_doctor(monkeypatch) -> None:
    fake = _FakePsycopg(assignments={("p1", "d1")})
    _install(monkeypatch, fake)

    ensure_patient_assignment("postgresql://db", patient_id="p1", current_doctor_id="d1")
    with pytest.raises(PatientAccessError, match="not assigned"):
        ensure_patient_assignment("postgresql://db", patient_id="p1", current_doctor_id="d2")

    query, params = fake.executed[0]
    assert 'FROM "patients" WHERE id = %s AND doctor_id = %s' in query
    assert params == ["p1", "d1"]


def test_load_category_rows_uses_cursor_columns(monkeypatch) -> None:
    fake = _FakePsycopg(tables=_tables())
    _install(monkeypatch, fake)

    rows = load_category_rows_from_postgres("postgresql://db", "insulin", patient_id="p1")
    empty = load_category_rows_from_postgres("postgresql://db", "activities", patient_id="p1")

    assert list(rows.columns) == ["id", "patient_id", "created_at", "cbg"]
    assert rows["cbg"].tolist() == [100, 90]
    assert empty.empty
    assert list(empty.columns) == ["id", "patient_id", "created_at", "duration"]
    assert fake.executed[0] == ('SELECT * FROM "insulin" WHERE patient_id = %s', ["p1"])


def test_load_patient_logs_fetches_every_category(monkeypatch) -> None:
    fake = _FakePsycopg(tables=_tables(), assignments={("p1", "d1")})
    _install(monkeypatch, fake)

    logs = load_patient_logs_from_postgres(
        "postgresql://db",
        patient_id="p1",
        current_doctor_id="d1",
        categories=("insulin", "meals", "activity"),
        tables={"meal": "meal_logs"},
        max_workers=3,
    )

    assert list(logs) == ["insulin", "meal", "activity"]
    assert len(logs["insulin"]) == 2
    assert logs["meal"].loc[0, "meal_type"] == "lunch"
    assert logs["activity"].empty
    assert len(fake.connect_calls) == 4
    assert any('"meal_logs"' in query for query, _params in fake.executed)


def test_load_patient_logs_stops_before_fetching_for_unassigned_patient(monkeypatch) -> None:
    fake = _FakePsycopg(tables=_tables(), assignments={("p1", "d1")})
    _install(monkeypatch, fake)

    with pytest.raises(PatientAccessError):
        load_patient_logs_from_postgres("postgresql://db", patient_id="p1", current_doctor_id="d9")

    assert len(fake.connect_calls) == 1


def test_load_patient_logs_propagates_query_failures(monkeypatch) -> None:
    fake = _FakePsycopg(tables=_tables(), assignments={("p1", "d1")})
    _install(monkeypatch, fake)

    def _failing_rows(db_url: str, table_name: str, patient_id: str):
        raise RuntimeError(f"relation {table_name} does not exist")

    monkeypatch.setattr(store_module, "load_category_rows_from_postgres", _failing_rows)

    with pytest.raises(RuntimeError, match="does not exist"):
        load_patient_logs_from_postgres(
            "postgresql://db",
            patient_id="p1",
            current_doctor_id="d1",
            categories=("sleep",),
        )


def test_load_doctor_notes_filters_by_patient_and_doctor(monkeypatch) -> None:
    tables = {
        "doctor_reports": (
            ["report_data", "created_at", "doctor_id"],
            [({"note": "Reduce evening snacks"}, "2024-01-03T09:00:00", "d1")],
        )
    }
    fake = _FakePsycopg(tables=tables)
    _install(monkeypatch, fake)

    notes = load_doctor_notes_from_postgres(
        "postgresql://db", patient_id="p1", current_doctor_id="d1"
    )

    assert notes.loc[0, "report_data"] == {"note": "Reduce evening snacks"}
    query, params = fake.executed[0]
    assert 'FROM "doctor_reports" WHERE patient_id = %s AND doctor_id = %s' in query
    assert query.endswith("ORDER BY created_at DESC")
    assert params == ["p1", "d1"]
