from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import AttendanceRecord, Department, Task, TaskStatus, User
from app.schemas import (
    AttendanceMetricsRead,
    AttendanceTodayRead,
    AttendanceTrendPointRead,
    DateRangeRead,
    DepartmentOptionRead,
    DistributionBucketRead,
    GrowthMetricsRead,
    GrowthPointRead,
    OverviewRead,
    TaskMetricsRead,
    TaskTrendPointRead,
)
from app.services.date_range import (
    AnalyticsFilters,
    DateRange,
    local_day,
    local_day_start_utc,
    local_today,
    normalize_utc,
)
from app.services.directory import eligible_user_filters
from app.services.schema_guard import SchemaCapabilities, get_schema_capabilities
from app.services.scoring_calc import collapse_daily_checkins, count_expected_days, display_score, is_completed_on_time
from app.services.scoring_config import ScoringConfig
from app.settings import get_settings


def _distribution(buckets: list[tuple[str, int]]) -> list[DistributionBucketRead]:
    return [DistributionBucketRead(name=name, value=value) for name, value in buckets if value > 0]


def _count_employees(db: Session, company_id: int, department_id: int | None) -> int:
    return int(
        db.scalar(select(func.count(User.id)).where(*eligible_user_filters(company_id, department_id))) or 0
    )


def _eligible_checkins(
    db: Session,
    *,
    config: ScoringConfig,
    department_id: int | None,
    start_utc: datetime,
    end_utc: datetime,
):
    rows = db.execute(
        select(AttendanceRecord.user_id, AttendanceRecord.clock_in_time, AttendanceRecord.is_late_arrival)
        .join(User, User.id == AttendanceRecord.user_id)
        .where(
            AttendanceRecord.company_id == config.company_id,
            AttendanceRecord.clock_in_time >= start_utc,
            AttendanceRecord.clock_in_time < end_utc,
            *eligible_user_filters(config.company_id, department_id),
        )
    ).all()
    return collapse_daily_checkins(rows, config.timezone)


def get_department_options(db: Session, company_id: int) -> list[DepartmentOptionRead]:
    rows = db.scalars(
        select(Department).where(Department.company_id == company_id).order_by(Department.name.asc())
    ).all()
    return [DepartmentOptionRead.model_validate(row) for row in rows]


def get_overview_stats(
    db: Session,
    config: ScoringConfig,
    filters: AnalyticsFilters | None = None,
    *,
    capabilities: SchemaCapabilities | None = None,
    now_utc: datetime | None = None,
) -> OverviewRead:
    filters = filters or AnalyticsFilters()
    capabilities = capabilities or get_schema_capabilities()
    now_utc = normalize_utc(now_utc) or datetime.now(timezone.utc)
    today = local_today(config.timezone, now_utc)
    total_employees = _count_employees(db, config.company_id, filters.department_id)

    today_checkins = _eligible_checkins(
        db,
        config=config,
        department_id=filters.department_id,
        start_utc=local_day_start_utc(today, config.timezone),
        end_utc=local_day_start_utc(today + timedelta(days=1), config.timezone),
    )
    present = len(today_checkins)
    late = sum(1 for item in today_checkins if item.is_late)

    assignee = capabilities.task_assignee
    month_start_utc = local_day_start_utc(today.replace(day=1), config.timezone)
    task_totals = db.execute(
        select(Task.status, func.count(Task.id).label("total"))
        .join(User, User.id == assignee)
        .where(
            Task.company_id == config.company_id,
            Task.deleted_at.is_(None),
            Task.created_at >= month_start_utc,
            *eligible_user_filters(config.company_id, filters.department_id),
        )
        .group_by(Task.status)
    ).all()
    total_tasks = sum(int(row.total) for row in task_totals)
    completed_tasks = sum(int(row.total) for row in task_totals if row.status == TaskStatus.COMPLETED)
    completion_rate = display_score(completed_tasks / total_tasks * 100) if total_tasks else 0

    return OverviewRead(
        total_employees=total_employees,
        attendance_today=AttendanceTodayRead(
            present=present,
            on_time=present - late,
            late=late,
            absent=max(0, total_employees - present),
        ),
        task_completion_rate=completion_rate,
    )


def get_attendance_metrics(
    db: Session,
    config: ScoringConfig,
    window: DateRange,
    filters: AnalyticsFilters | None = None,
) -> AttendanceMetricsRead:
    filters = filters or AnalyticsFilters()
    employee_count = _count_employees(db, config.company_id, filters.department_id)
    expected_days = count_expected_days(window.start_date, window.end_date, config.working_days)
    start_utc, end_utc = window.utc_bounds()
    checkins = [
        item
        for item in _eligible_checkins(
            db,
            config=config,
            department_id=filters.department_id,
            start_utc=start_utc,
            end_utc=end_utc,
        )
        if window.contains(item.day)
    ]

    present_by_day: Counter[date] = Counter()
    late_by_day: Counter[date] = Counter()
    for item in checkins:
        present_by_day[item.day] += 1
        if item.is_late:
            late_by_day[item.day] += 1

    present_days = len(checkins)
    late_days = sum(late_by_day.values())
    absent_days = max(0, expected_days * employee_count - present_days)

    return AttendanceMetricsRead(
        range=DateRangeRead(start_date=window.start_date, end_date=window.end_date),
        distribution=_distribution(
            [
                ("On time", present_days - late_days),
                ("Late", late_days),
                ("Absent", absent_days),
            ]
        ),
        trend=[
            AttendanceTrendPointRead(
                date=day_value,
                on_time=present_by_day[day_value] - late_by_day[day_value],
                late=late_by_day[day_value],
                present=present_by_day[day_value],
            )
            for day_value in sorted(present_by_day)
        ],
    )


def get_task_metrics(
    db: Session,
    config: ScoringConfig,
    window: DateRange,
    filters: AnalyticsFilters | None = None,
    *,
    capabilities: SchemaCapabilities | None = None,
    now_utc: datetime | None = None,
) -> TaskMetricsRead:
    filters = filters or AnalyticsFilters()
    capabilities = capabilities or get_schema_capabilities()
    now_utc = normalize_utc(now_utc) or datetime.now(timezone.utc)
    assignee = capabilities.task_assignee
    start_utc, end_utc = window.utc_bounds()
    rows = db.execute(
        select(Task.status, Task.completed_at, Task.due_date)
        .join(User, User.id == assignee)
        .where(
            Task.company_id == config.company_id,
            Task.deleted_at.is_(None),
            Task.due_date.is_not(None),
            Task.due_date >= start_utc,
            Task.due_date < end_utc,
            *eligible_user_filters(config.company_id, filters.department_id),
        )
    ).all()

    per_day: dict[date, Counter[str]] = defaultdict(Counter)
    totals: Counter[str] = Counter()
    for row in rows:
        due_day = local_day(row.due_date, config.timezone)
        if not window.contains(due_day):
            continue
        bucket = per_day[due_day]
        bucket["due_total"] += 1
        if is_completed_on_time(row.status, row.completed_at, row.due_date):
            bucket["completed_on_time"] += 1
        elif row.status == TaskStatus.COMPLETED and row.completed_at is not None:
            bucket["completed_late"] += 1
        elif row.status == TaskStatus.OPEN and normalize_utc(row.due_date) < now_utc:
            bucket["overdue"] += 1
    for bucket in per_day.values():
        totals.update(bucket)

    return TaskMetricsRead(
        range=DateRangeRead(start_date=window.start_date, end_date=window.end_date),
        distribution=_distribution(
            [
                ("Completed on time", totals["completed_on_time"]),
                ("Completed late", totals["completed_late"]),
                ("Overdue", totals["overdue"]),
            ]
        ),
        due_total=totals["due_total"],
        trend=[
            TaskTrendPointRead(
                date=day_value,
                due_total=per_day[day_value]["due_total"],
                completed_on_time=per_day[day_value]["completed_on_time"],
                completed_late=per_day[day_value]["completed_late"],
                overdue=per_day[day_value]["overdue"],
            )
            for day_value in sorted(per_day)
        ],
    )


def _shift_month(month_start: date, months: int) -> date:
    index = month_start.year * 12 + (month_start.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def get_growth_metrics(
    db: Session,
    config: ScoringConfig,
    *,
    now_utc: datetime | None = None,
) -> GrowthMetricsRead:
    """Cumulative headcount joined per month over the recent months."""
    months = max(1, get_settings().analytics_growth_months)
    first_month = _shift_month(local_today(config.timezone, now_utc).replace(day=1), -(months - 1))
    rows = db.scalars(
        select(User.created_at).where(
            User.company_id == config.company_id,
            User.created_at >= local_day_start_utc(first_month, config.timezone),
        )
    ).all()

    joined: Counter[str] = Counter()
    for created_at in rows:
        created_day = local_day(created_at, config.timezone)
        if created_day is not None:
            joined[created_day.strftime("%Y-%m")] += 1

    cumulative = 0
    trend: list[GrowthPointRead] = []
    for month in sorted(joined):
        cumulative += joined[month]
        trend.append(GrowthPointRead(month=month, employees=cumulative))
    return GrowthMetricsRead(trend=trend)
