from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import PerformanceSnapshot, SnapshotPeriodType, User
from app.schemas import EmployeeScoreHistoryPointRead, ScoreTrendPointRead, ScoreTrendRead
from app.services.date_range import AnalyticsFilters, resolve_date_range
from app.services.directory import eligible_user_filters
from app.services.scoring_calc import display_score
from app.services.scoring_config import ScoringConfig, load_scoring_config
from app.settings import get_settings

MIN_MONTHLY_POINTS = 2


@dataclass
class TrendBucket:
    overall_sum: float = 0.0
    attendance_sum: float = 0.0
    task_sum: float = 0.0
    row_count: int = 0
    task_count: int = 0

    def add(self, row: Any) -> None:
        self.overall_sum += float(row.overall_sum or 0.0)
        self.attendance_sum += float(row.attendance_sum or 0.0)
        self.task_sum += float(row.task_sum or 0.0)
        self.row_count += int(row.row_count or 0)
        self.task_count += int(row.task_count or 0)

    def to_point(self, period: str) -> ScoreTrendPointRead:
        rows = self.row_count or 1
        return ScoreTrendPointRead(
            period=period,
            overall=display_score(self.overall_sum / rows),
            attendance=display_score(self.attendance_sum / rows),
            tasks=display_score(self.task_sum / self.task_count) if self.task_count else 0,
        )


def _daily_snapshot_totals(
    db: Session,
    *,
    company_id: int,
    department_id: int | None,
    start_date: date,
    end_date: date,
) -> list[Any]:
    return db.execute(
        select(
            PerformanceSnapshot.snapshot_date.label("day"),
            func.sum(PerformanceSnapshot.overall_score).label("overall_sum"),
            func.sum(PerformanceSnapshot.attendance_score).label("attendance_sum"),
            func.sum(PerformanceSnapshot.task_completion_score).label("task_sum"),
            func.count(PerformanceSnapshot.id).label("row_count"),
            func.count(PerformanceSnapshot.task_completion_score).label("task_count"),
        )
        .join(User, User.id == PerformanceSnapshot.user_id)
        .where(
            PerformanceSnapshot.company_id == company_id,
            PerformanceSnapshot.period_type == SnapshotPeriodType.DAILY,
            PerformanceSnapshot.snapshot_date >= start_date,
            PerformanceSnapshot.snapshot_date <= end_date,
            *eligible_user_filters(company_id, department_id),
        )
        .group_by(PerformanceSnapshot.snapshot_date)
        .order_by(PerformanceSnapshot.snapshot_date.asc())
    ).all()


def get_company_score_trend(
    db: Session,
    company_id: int,
    filters: AnalyticsFilters | None = None,
    *,
    config: ScoringConfig | None = None,
    now_utc: datetime | None = None,
) -> ScoreTrendRead:
    """Monthly score averages when two or more months exist, else the last days."""
    settings = get_settings()
    filters = filters or AnalyticsFilters()
    config = config or load_scoring_config(db, company_id)
    window = resolve_date_range(
        config.timezone,
        start_date=filters.start_date,
        end_date=filters.end_date,
        default_days=settings.analytics_trend_lookback_days,
        now_utc=now_utc,
    )

    daily_rows = _daily_snapshot_totals(
        db,
        company_id=company_id,
        department_id=filters.department_id,
        start_date=window.start_date,
        end_date=window.end_date,
    )
    months: dict[str, TrendBucket] = {}
    for row in daily_rows:
        months.setdefault(row.day.strftime("%Y-%m"), TrendBucket()).add(row)
    if len(months) >= MIN_MONTHLY_POINTS:
        return ScoreTrendRead(
            granularity="monthly",
            points=[bucket.to_point(period) for period, bucket in sorted(months.items())],
        )

    daily_days = max(1, settings.analytics_daily_trend_days)
    recent_rows = _daily_snapshot_totals(
        db,
        company_id=company_id,
        department_id=filters.department_id,
        start_date=window.end_date - timedelta(days=daily_days - 1),
        end_date=window.end_date,
    )
    points: list[ScoreTrendPointRead] = []
    for row in recent_rows:
        bucket = TrendBucket()
        bucket.add(row)
        points.append(bucket.to_point(row.day.strftime("%m-%d")))
    return ScoreTrendRead(granularity="daily", points=points)


def get_employee_score_history(
    db: Session,
    company_id: int,
    user_id: int,
    *,
    limit: int | None = None,
) -> list[EmployeeScoreHistoryPointRead]:
    limit = limit or get_settings().analytics_daily_trend_days
    rows = db.execute(
        select(PerformanceSnapshot.snapshot_date, PerformanceSnapshot.overall_score)
        .where(
            PerformanceSnapshot.company_id == company_id,
            PerformanceSnapshot.user_id == user_id,
            PerformanceSnapshot.period_type == SnapshotPeriodType.DAILY,
        )
        .order_by(PerformanceSnapshot.snapshot_date.desc())
        .limit(limit)
    ).all()
    return [
        EmployeeScoreHistoryPointRead(date=row.snapshot_date, score=display_score(row.overall_score))
        for row in reversed(rows)
    ]
