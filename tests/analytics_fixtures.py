from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.models import (
    AttendanceRecord,
    Company,
    CompanySettings,
    Department,
    PerformanceSnapshot,
    SnapshotPeriodType,
    Task,
    TaskStatus,
    User,
    UserRole,
)

# Tuesday; the default 30-day window is 2026-03-02..2026-03-31 with 22 weekdays.
NOW_UTC = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)


def make_memory_engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


def make_file_engine(path: str) -> Engine:
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return engine


def weekdays_between(start: date, end: date) -> list[date]:
    days: list[date] = []
    current = start
    while current <= end:
        if current.isoweekday() <= 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def at_utc(day_value: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day_value, time(hour, minute), tzinfo=timezone.utc)


def add_company(
    db: Session,
    company_id: int = 1,
    *,
    timezone_name: str | None = "UTC",
    kpi: dict[str, Any] | None = None,
    working_days: list[int] | None = None,
) -> Company:
    company = Company(id=company_id, name=f"Company {company_id}", timezone=timezone_name, is_active=True)
    db.add(company)
    db.add(
        CompanySettings(
            company_id=company_id,
            working_days=working_days if working_days is not None else [1, 2, 3, 4, 5],
            kpi_settings=kpi if kpi is not None else {"attendanceWeight": 40, "taskCompletionWeight": 60},
        )
    )
    db.flush()
    return company


def add_department(db: Session, department_id: int, company_id: int = 1, *, name: str) -> Department:
    department = Department(id=department_id, company_id=company_id, name=name)
    db.add(department)
    db.flush()
    return department


def add_user(
    db: Session,
    user_id: int,
    company_id: int = 1,
    *,
    first_name: str = "Test",
    department_id: int | None = None,
    role: UserRole = UserRole.EMPLOYEE,
    is_active: bool = True,
    created_at: datetime | None = None,
) -> User:
    user = User(
        id=user_id,
        company_id=company_id,
        department_id=department_id,
        first_name=first_name,
        last_name=f"User{user_id}",
        email=f"user{user_id}@example.com",
        role=role,
        is_active=is_active,
        created_at=created_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    db.add(user)
    db.flush()
    return user


def add_checkin(
    db: Session,
    user_id: int,
    clock_in: datetime,
    company_id: int = 1,
    *,
    late: bool = False,
) -> None:
    db.add(
        AttendanceRecord(
            company_id=company_id,
            user_id=user_id,
            clock_in_time=clock_in,
            clock_out_time=clock_in + timedelta(hours=8),
            is_late_arrival=late,
        )
    )


def add_task(
    db: Session,
    user_id: int | None,
    company_id: int = 1,
    *,
    due: datetime | None,
    status: TaskStatus = TaskStatus.OPEN,
    completed_at: datetime | None = None,
    created_at: datetime | None = None,
    legacy_assignee: bool = False,
    deleted_at: datetime | None = None,
) -> None:
    db.add(
        Task(
            company_id=company_id,
            title="Task",
            assignee_id=None if legacy_assignee else user_id,
            assigned_to=user_id if legacy_assignee else None,
            status=status,
            due_date=due,
            completed_at=completed_at,
            created_at=created_at or datetime(2026, 2, 1, tzinfo=timezone.utc),
            deleted_at=deleted_at,
        )
    )


def add_snapshot(
    db: Session,
    user_id: int,
    day_value: date,
    company_id: int = 1,
    *,
    overall: float,
    attendance: float = 0.0,
    task: float | None = 0.0,
    rank: int = 1,
    tier: str = "Bronze",
) -> None:
    db.add(
        PerformanceSnapshot(
            company_id=company_id,
            user_id=user_id,
            snapshot_date=day_value,
            period_type=SnapshotPeriodType.DAILY,
            attendance_score=attendance,
            task_completion_score=task,
            overall_score=overall,
            rank_position=rank,
            tier=tier,
        )
    )


def seed_scenario_employee(db: Session, user_id: int, company_id: int = 1) -> None:
    """20 present weekdays in March 2026 (2 late) and 5 due tasks, 3 completed on time."""
    days = weekdays_between(date(2026, 3, 2), date(2026, 3, 31))[:20]
    # Same-day duplicate: the later, late clock-in wins.
    add_checkin(db, user_id, at_utc(days[0], 7), company_id, late=False)
    add_checkin(db, user_id, at_utc(days[0], 9), company_id, late=True)
    add_checkin(db, user_id, at_utc(days[1], 9), company_id, late=True)
    for day_value in days[2:]:
        add_checkin(db, user_id, at_utc(day_value, 8), company_id)

    due = at_utc(date(2026, 3, 10), 17)
    for _ in range(3):
        add_task(
            db,
            user_id,
            company_id,
            due=due,
            status=TaskStatus.COMPLETED,
            completed_at=at_utc(date(2026, 3, 9), 12),
        )
    add_task(
        db,
        user_id,
        company_id,
        due=due,
        status=TaskStatus.COMPLETED,
        completed_at=at_utc(date(2026, 3, 12), 12),
    )
    add_task(db, user_id, company_id, due=due, status=TaskStatus.OPEN)
    # Outside the window and soft-deleted tasks never count.
    add_task(db, user_id, company_id, due=at_utc(date(2026, 2, 2), 17), status=TaskStatus.OPEN)
    add_task(
        db,
        user_id,
        company_id,
        due=due,
        status=TaskStatus.OPEN,
        deleted_at=at_utc(date(2026, 3, 11), 9),
    )
