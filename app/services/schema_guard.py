from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import InstrumentedAttribute

from app.models import Task

TASK_ASSIGNEE_COLUMNS: tuple[str, ...] = ("assignee_id", "assigned_to")

REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "companies": {"id", "timezone"},
    "company_settings": {"company_id", "working_days", "kpi_settings"},
    "departments": {"id", "company_id", "name"},
    "users": {"id", "company_id", "department_id", "role", "is_active", "deleted_at", "created_at"},
    "attendance_records": {"id", "company_id", "user_id", "clock_in_time", "is_late_arrival"},
    "tasks": {"id", "company_id", "status", "due_date", "completed_at", "created_at", "deleted_at"},
    "performance_snapshots": {
        "id",
        "company_id",
        "user_id",
        "date",
        "period_type",
        "attendance_score",
        "task_completion_score",
        "overall_score",
        "rank_position",
        "tier",
    },
}


@dataclass(frozen=True, slots=True)
class SchemaCapabilities:
    task_assignee_column: str = "assignee_id"

    @property
    def task_assignee(self) -> InstrumentedAttribute[int | None]:
        return getattr(Task, self.task_assignee_column)

    def to_dict(self) -> dict[str, Any]:
        return {"task_assignee_column": self.task_assignee_column}


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    capabilities: SchemaCapabilities = field(default_factory=SchemaCapabilities)
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "capabilities": self.capabilities.to_dict(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


_capabilities = SchemaCapabilities()


def get_schema_capabilities() -> SchemaCapabilities:
    return _capabilities


def set_schema_capabilities(capabilities: SchemaCapabilities) -> None:
    global _capabilities
    _capabilities = capabilities


def _select_assignee_column(column_names: set[str]) -> str | None:
    for candidate in TASK_ASSIGNEE_COLUMNS:
        if candidate in column_names:
            return candidate
    return None


def detect_schema_capabilities(engine: Engine, *, inspector: Any | None = None) -> SchemaCapabilities:
    """Resolve which assignee column the tasks table carries, preferring ``assignee_id``."""
    inspector = inspector if inspector is not None else inspect(engine)
    column_names = {str(item.get("name")) for item in inspector.get_columns("tasks")}
    selected = _select_assignee_column(column_names)
    if selected is None:
        raise RuntimeError(f"tasks table has none of the assignee columns {', '.join(TASK_ASSIGNEE_COLUMNS)}")
    return SchemaCapabilities(task_assignee_column=selected)


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)
    capabilities = SchemaCapabilities()
    tasks_readable = False

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")
        if table_name == "tasks":
            tasks_readable = True

    if tasks_readable:
        try:
            capabilities = detect_schema_capabilities(engine, inspector=inspector)
        except RuntimeError:
            issues.append(f"MISSING_COLUMNS:tasks:{'|'.join(TASK_ASSIGNEE_COLUMNS)}")
        else:
            if capabilities.task_assignee_column != TASK_ASSIGNEE_COLUMNS[0]:
                warnings.append(f"LEGACY_TASK_ASSIGNEE_COLUMN:{capabilities.task_assignee_column}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        capabilities=capabilities,
        issues=issues,
        warnings=warnings,
    )
