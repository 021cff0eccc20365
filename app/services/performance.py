from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Protocol

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from app.errors import employee_not_found
from app.models import AttendanceRecord, PerformanceSnapshot, SnapshotPeriodType, Task, TaskStatus, User
from app.schemas import (
    EmployeePerformanceMetricsRead,
    EmployeePerformanceRead,
    LeaderboardEmployeeRead,
    LeaderboardEntryRead,
    ScoresRead,
)
from app.services.date_range import AnalyticsFilters, DateRange, local_today, resolve_date_range
from app.services.directory import PROFILE_COLUMNS, EmployeeProfile, eligible_user_filters, profile_from_row
from app.services.ranking import TIER_BRONZE, RankedEntry, TierPolicy, rank_employees, rerank_entries
from app.services.schema_guard import SchemaCapabilities, get_schema_capabilities
from app.services.score_trend import get_employee_score_history
from app.services.scoring_calc import (
    EmployeeScoreResult,
    TaskTally,
    collapse_daily_checkins,
    count_expected_days,
    display_score,
    score_employee,
    tally_attendance,
)
from app.services.scoring_config import ScoringConfig, load_scoring_config
from app.settings import get_settings

logger = logging.getLogger(__name__)

PerformanceSourceName = Literal["snapshot", "live"]


@dataclass(frozen=True)
class PerformanceResult:
    source: PerformanceSourceName
    target_date: date
    entries: list[RankedEntry] = field(default_factory=list)


class PerformanceSource(Protocol):
    name: PerformanceSourceName

    def load(
        self,
        db: Session,
        *,
        config: ScoringConfig,
        window: DateRange,
        filters: AnalyticsFilters,
        capabilities: SchemaCapabilities,
    ) -> list[RankedEntry]: ...


class SnapshotPerformanceSource:
    """Reads precomputed daily snapshots for the last day of the window."""

    name: PerformanceSourceName = "snapshot"

    def __init__(self, tier_policy: TierPolicy | None = None) -> None:
        self.tier_policy = tier_policy

    def load(
        self,
        db: Session,
        *,
        config: ScoringConfig,
        window: DateRange,
        filters: AnalyticsFilters,
        capabilities: SchemaCapabilities,
    ) -> list[RankedEntry]:
        rows = db.execute(
            select(
                PerformanceSnapshot.rank_position,
                PerformanceSnapshot.tier,
                PerformanceSnapshot.overall_score,
                PerformanceSnapshot.attendance_score,
                PerformanceSnapshot.task_completion_score,
                *PROFILE_COLUMNS,
            )
            .join(User, User.id == PerformanceSnapshot.user_id)
            .where(
                PerformanceSnapshot.company_id == config.company_id,
                PerformanceSnapshot.period_type == SnapshotPeriodType.DAILY,
                PerformanceSnapshot.snapshot_date == window.end_date,
                *eligible_user_filters(config.company_id, filters.department_id),
            )
            .order_by(PerformanceSnapshot.rank_position.asc(), PerformanceSnapshot.user_id.asc())
        ).all()

        entries = [
            RankedEntry(
                result=EmployeeScoreResult(
                    user_id=row.id,
                    attendance_score=float(row.attendance_score or 0.0),
                    task_score=float(row.task_completion_score or 0.0),
                    overall_score=float(row.overall_score or 0.0),
                    profile=profile_from_row(row),
                ),
                rank=int(row.rank_position),
                tier=str(row.tier),
            )
            for row in rows
        ]
        # Stored ranks can skip rows that are no longer eligible or belong to
        # other departments; renumber so ranks stay 1..N.
        return rerank_entries(entries, self.tier_policy)


class LivePerformanceSource:
    """Scores every eligible employee from raw records in three batched queries."""

    name: PerformanceSourceName = "live"

    def __init__(self, tier_policy: TierPolicy | None = None) -> None:
        self.tier_policy = tier_policy

    def load(
        self,
        db: Session,
        *,
        config: ScoringConfig,
        window: DateRange,
        filters: AnalyticsFilters,
        capabilities: SchemaCapabilities,
    ) -> list[RankedEntry]:
        employees = db.execute(
            select(*PROFILE_COLUMNS)
            .where(*eligible_user_filters(config.company_id, filters.department_id))
            .order_by(User.id.asc())
        ).all()
        if not employees:
            return []

        employee_ids = [row.id for row in employees]
        window_start_utc, window_end_utc = window.utc_bounds()

        attendance_rows = db.execute(
            select(
                AttendanceRecord.user_id,
                AttendanceRecord.clock_in_time,
                AttendanceRecord.is_late_arrival,
            )
            .where(
                AttendanceRecord.company_id == config.company_id,
                AttendanceRecord.user_id.in_(employee_ids),
                AttendanceRecord.clock_in_time >= window_start_utc,
                AttendanceRecord.clock_in_time < window_end_utc,
            )
            .order_by(
                AttendanceRecord.user_id.asc(),
                AttendanceRecord.clock_in_time.asc(),
                AttendanceRecord.id.asc(),
            )
        ).all()

        assignee = capabilities.task_assignee
        completed_on_time = case(
            (
                and_(
                    Task.status == TaskStatus.COMPLETED,
                    Task.completed_at.is_not(None),
                    Task.completed_at <= Task.due_date,
                ),
                1,
            ),
            else_=0,
        )
        task_rows = db.execute(
            select(
                assignee.label("user_id"),
                func.count(Task.id).label("due_total"),
                func.coalesce(func.sum(completed_on_time), 0).label("completed_on_time"),
            )
            .where(
                Task.company_id == config.company_id,
                Task.deleted_at.is_(None),
                assignee.in_(employee_ids),
                Task.due_date.is_not(None),
                Task.due_date >= window_start_utc,
                Task.due_date < window_end_utc,
            )
            .group_by(assignee)
        ).all()

        attendance_by_user: dict[int, list[Any]] = defaultdict(list)
        for row in attendance_rows:
            attendance_by_user[row.user_id].append(row)
        tasks_by_user = {row.user_id: row for row in task_rows}
        expected_days = count_expected_days(window.start_date, window.end_date, config.working_days)

        results: list[EmployeeScoreResult] = []
        for employee in employees:
            try:
                checkins = collapse_daily_checkins(attendance_by_user.get(employee.id, []), config.timezone)
                task_row = tasks_by_user.get(employee.id)
                task_tally = (
                    TaskTally(due_total=int(task_row.due_total), completed_on_time=int(task_row.completed_on_time))
                    if task_row is not None
                    else TaskTally()
                )
                results.append(
                    score_employee(
                        user_id=employee.id,
                        attendance=tally_attendance(checkins, window),
                        tasks=task_tally,
                        expected_days=expected_days,
                        attendance_weight=config.attendance_weight,
                        task_weight=config.task_weight,
                        late_penalty=config.late_penalty,
                        profile=profile_from_row(employee),
                    )
                )
            except Exception:
                logger.exception(
                    "performance_employee_skipped",
                    extra={"company_id": config.company_id, "employee_id": employee.id},
                )

        return rank_employees(results, self.tier_policy)


def resolve_performance_window(config: ScoringConfig, filters: AnalyticsFilters, *, now_utc: datetime | None = None) -> DateRange:
    return resolve_date_range(
        config.timezone,
        start_date=filters.start_date,
        end_date=filters.end_date,
        default_days=get_settings().analytics_default_lookback_days,
        now_utc=now_utc,
    )


def get_company_performance(
    db: Session,
    company_id: int,
    filters: AnalyticsFilters | None = None,
    *,
    config: ScoringConfig | None = None,
    window: DateRange | None = None,
    capabilities: SchemaCapabilities | None = None,
    now_utc: datetime | None = None,
    snapshot_source: PerformanceSource | None = None,
    live_source: PerformanceSource | None = None,
) -> PerformanceResult:
    filters = filters or AnalyticsFilters()
    config = config or load_scoring_config(db, company_id)
    window = window or resolve_performance_window(config, filters, now_utc=now_utc)
    capabilities = capabilities or get_schema_capabilities()
    snapshot_source = snapshot_source or SnapshotPerformanceSource()

    source_kwargs: dict[str, Any] = {
        "config": config,
        "window": window,
        "filters": filters,
        "capabilities": capabilities,
    }
    entries = snapshot_source.load(db, **source_kwargs)
    if entries:
        logger.info(
            "performance_snapshot_hit",
            extra={"company_id": company_id, "target_date": window.end_date, "rows": len(entries)},
        )
        return PerformanceResult(source="snapshot", target_date=window.end_date, entries=entries)

    live_source = live_source or LivePerformanceSource()
    logger.info(
        "performance_live_fallback",
        extra={"company_id": company_id, "target_date": window.end_date, "department_id": filters.department_id},
    )
    entries = live_source.load(db, **source_kwargs)
    return PerformanceResult(source="live", target_date=window.end_date, entries=entries)


def to_leaderboard_entry(entry: RankedEntry) -> LeaderboardEntryRead:
    result = entry.result
    profile = result.profile or EmployeeProfile(id=result.user_id, name="")
    return LeaderboardEntryRead(
        rank=entry.rank,
        tier=entry.tier,
        employee=LeaderboardEmployeeRead(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            avatar=profile.avatar,
            role=profile.role,
        ),
        scores=ScoresRead(
            overall=result.display_overall,
            attendance=result.display_attendance,
            tasks=result.display_task,
        ),
    )


def get_employee_performance(
    db: Session,
    company_id: int,
    user_id: int,
    *,
    capabilities: SchemaCapabilities | None = None,
    now_utc: datetime | None = None,
) -> EmployeePerformanceRead:
    capabilities = capabilities or get_schema_capabilities()
    config = load_scoring_config(db, company_id)
    user = db.scalar(
        select(User).where(User.id == user_id, User.company_id == company_id, User.deleted_at.is_(None))
    )
    if user is None:
        raise employee_not_found(user_id)

    window = resolve_performance_window(config, AnalyticsFilters(), now_utc=now_utc)
    today = local_today(config.timezone, now_utc)
    window_start_utc, window_end_utc = window.utc_bounds()

    checkin_rows = db.execute(
        select(AttendanceRecord.user_id, AttendanceRecord.clock_in_time, AttendanceRecord.is_late_arrival).where(
            AttendanceRecord.company_id == company_id,
            AttendanceRecord.user_id == user_id,
            AttendanceRecord.clock_in_time >= window_start_utc,
            AttendanceRecord.clock_in_time < window_end_utc,
        )
    ).all()
    days_present = tally_attendance(collapse_daily_checkins(checkin_rows, config.timezone), window).present_days

    assignee = capabilities.task_assignee
    tasks_completed = int(
        db.scalar(
            select(func.count(Task.id)).where(
                Task.company_id == company_id,
                assignee == user_id,
                Task.deleted_at.is_(None),
                Task.status == TaskStatus.COMPLETED,
                Task.completed_at.is_not(None),
                Task.completed_at >= window_start_utc,
                Task.completed_at < window_end_utc,
            )
        )
        or 0
    )
    history = get_employee_score_history(db, company_id, user_id)

    snapshot = db.scalar(
        select(PerformanceSnapshot).where(
            PerformanceSnapshot.company_id == company_id,
            PerformanceSnapshot.user_id == user_id,
            PerformanceSnapshot.period_type == SnapshotPeriodType.DAILY,
            PerformanceSnapshot.snapshot_date == today,
        )
    )
    if snapshot is not None:
        total_employees = int(
            db.scalar(select(func.count(User.id)).where(*eligible_user_filters(company_id))) or 0
        )
        return EmployeePerformanceRead(
            rank=snapshot.rank_position,
            tier=snapshot.tier,
            total_employees=total_employees,
            score=display_score(snapshot.overall_score),
            source="snapshot",
            metrics=EmployeePerformanceMetricsRead(
                attendance_score=display_score(snapshot.attendance_score),
                task_score=display_score(snapshot.task_completion_score),
                days_present=days_present,
                tasks_completed=tasks_completed,
            ),
            trend=history,
        )

    performance = get_company_performance(
        db,
        company_id,
        AnalyticsFilters(end_date=today),
        config=config,
        window=window,
        capabilities=capabilities,
        now_utc=now_utc,
    )
    me = next((item for item in performance.entries if item.user_id == user_id), None)
    return EmployeePerformanceRead(
        rank=me.rank if me is not None else 0,
        tier=me.tier if me is not None else TIER_BRONZE,
        total_employees=len(performance.entries),
        score=me.result.display_overall if me is not None else 0,
        source=performance.source,
        metrics=EmployeePerformanceMetricsRead(
            attendance_score=me.result.display_attendance if me is not None else 0,
            task_score=me.result.display_task if me is not None else 0,
            days_present=days_present,
            tasks_completed=tasks_completed,
        ),
        trend=history,
    )
