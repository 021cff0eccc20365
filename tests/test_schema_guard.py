from __future__ import annotations

import unittest
from unittest.mock import patch

from app.models import Task
from app.services.schema_guard import (
    REQUIRED_TABLE_COLUMNS,
    SchemaCapabilities,
    detect_schema_capabilities,
    get_schema_capabilities,
    set_schema_capabilities,
    verify_runtime_schema,
)


class _FakeInspector:
    def __init__(self, *, columns_by_table: dict[str, set[str]]):
        self._columns_by_table = columns_by_table

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]


def _full_schema(**overrides: set[str]) -> dict[str, set[str]]:
    columns = {table: set(required) for table, required in REQUIRED_TABLE_COLUMNS.items()}
    columns["tasks"] = columns["tasks"] | {"assignee_id"}
    columns.update(overrides)
    return columns


class SchemaGuardTests(unittest.TestCase):
    def tearDown(self) -> None:
        set_schema_capabilities(SchemaCapabilities())

    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table=_full_schema())

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(object())  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.capabilities.task_assignee_column, "assignee_id")

    def test_legacy_assignee_column_is_detected_with_warning(self) -> None:
        legacy_tasks = set(REQUIRED_TABLE_COLUMNS["tasks"]) | {"assigned_to"}
        fake_inspector = _FakeInspector(columns_by_table=_full_schema(tasks=legacy_tasks))

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(object())  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["LEGACY_TASK_ASSIGNEE_COLUMN:assigned_to"])
        self.assertIs(result.capabilities.task_assignee, Task.assigned_to)

    def test_new_assignee_column_wins_when_both_exist(self) -> None:
        both = set(REQUIRED_TABLE_COLUMNS["tasks"]) | {"assignee_id", "assigned_to"}
        fake_inspector = _FakeInspector(columns_by_table=_full_schema(tasks=both))

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(object())  # type: ignore[arg-type]

        self.assertIs(result.capabilities.task_assignee, Task.assignee_id)
        self.assertEqual(result.warnings, [])

    def test_verify_runtime_schema_reports_missing_columns(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table=_full_schema(
                users={"id", "company_id"},
                tasks=set(REQUIRED_TABLE_COLUMNS["tasks"]),
            )
        )

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(object())  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:users:created_at,deleted_at,department_id,is_active,role", result.issues)
        self.assertIn("MISSING_COLUMNS:tasks:assignee_id|assigned_to", result.issues)
        self.assertEqual(result.to_dict()["issue_count"], 2)

    def test_unreadable_table_is_reported(self) -> None:
        columns = _full_schema()
        del columns["performance_snapshots"]
        fake_inspector = _FakeInspector(columns_by_table=columns)

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(object())  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertEqual(result.issues, ["TABLE_UNREADABLE:performance_snapshots:KeyError"])

    def test_detect_prefers_assignee_id_column(self) -> None:
        both = set(REQUIRED_TABLE_COLUMNS["tasks"]) | {"assignee_id", "assigned_to"}
        fake_inspector = _FakeInspector(columns_by_table={"tasks": both})

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            capabilities = detect_schema_capabilities(object())  # type: ignore[arg-type]

        self.assertEqual(capabilities.task_assignee_column, "assignee_id")

    def test_detect_falls_back_to_assigned_to_column(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table={"tasks": {"id", "assigned_to"}})

        capabilities = detect_schema_capabilities(object(), inspector=fake_inspector)  # type: ignore[arg-type]

        self.assertIs(capabilities.task_assignee, Task.assigned_to)

    def test_detect_raises_without_any_assignee_column(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table={"tasks": {"id", "status"}})

        with self.assertRaises(RuntimeError):
            detect_schema_capabilities(object(), inspector=fake_inspector)  # type: ignore[arg-type]

    def test_capabilities_are_resolved_once_and_shared(self) -> None:
        set_schema_capabilities(SchemaCapabilities(task_assignee_column="assigned_to"))

        self.assertIs(get_schema_capabilities().task_assignee, Task.assigned_to)


if __name__ == "__main__":
    unittest.main()
