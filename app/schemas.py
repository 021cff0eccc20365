from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DepartmentOptionRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class AnalyticsFiltersRead(BaseModel):
    department_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None


class DateRangeRead(BaseModel):
    start_date: date
    end_date: date


class AttendanceTodayRead(BaseModel):
    present: int = 0
    on_time: int = 0
    late: int = 0
    absent: int = 0


class OverviewRead(BaseModel):
    total_employees: int = 0
    attendance_today: AttendanceTodayRead = Field(default_factory=AttendanceTodayRead)
    task_completion_rate: int = 0


class LeaderboardEmployeeRead(BaseModel):
    id: int
    name: str
    email: str | None = None
    avatar: str | None = None
    role: str | None = None


class ScoresRead(BaseModel):
    overall: int = Field(ge=0, le=100)
    attendance: int = Field(ge=0, le=100)
    tasks: int = Field(ge=0, le=100)


class LeaderboardEntryRead(BaseModel):
    rank: int = Field(ge=1)
    tier: str
    employee: LeaderboardEmployeeRead
    scores: ScoresRead


class DistributionBucketRead(BaseModel):
    name: str
    value: int


class AttendanceTrendPointRead(BaseModel):
    date: date
    on_time: int = 0
    late: int = 0
    present: int = 0


class AttendanceMetricsRead(BaseModel):
    range: DateRangeRead | None = None
    distribution: list[DistributionBucketRead] = Field(default_factory=list)
    trend: list[AttendanceTrendPointRead] = Field(default_factory=list)


class TaskTrendPointRead(BaseModel):
    date: date
    due_total: int = 0
    completed_on_time: int = 0
    completed_late: int = 0
    overdue: int = 0


class TaskMetricsRead(BaseModel):
    range: DateRangeRead | None = None
    distribution: list[DistributionBucketRead] = Field(default_factory=list)
    due_total: int = 0
    trend: list[TaskTrendPointRead] = Field(default_factory=list)


class GrowthPointRead(BaseModel):
    month: str
    employees: int


class GrowthMetricsRead(BaseModel):
    trend: list[GrowthPointRead] = Field(default_factory=list)


class ScoreTrendPointRead(BaseModel):
    period: str
    overall: int
    attendance: int
    tasks: int


class ScoreTrendRead(BaseModel):
    granularity: Literal["monthly", "daily"]
    points: list[ScoreTrendPointRead] = Field(default_factory=list)


class DashboardResponse(BaseModel):
    departments: list[DepartmentOptionRead] = Field(default_factory=list)
    filters: AnalyticsFiltersRead
    overview: OverviewRead = Field(default_factory=OverviewRead)
    leaderboard: list[LeaderboardEntryRead] = Field(default_factory=list)
    attendance: AttendanceMetricsRead = Field(default_factory=AttendanceMetricsRead)
    tasks: TaskMetricsRead = Field(default_factory=TaskMetricsRead)
    growth: GrowthMetricsRead = Field(default_factory=GrowthMetricsRead)
    score_trend: list[ScoreTrendPointRead] = Field(default_factory=list)
    degraded_sections: list[str] = Field(default_factory=list)


class EmployeeScoreHistoryPointRead(BaseModel):
    date: date
    score: int


class EmployeePerformanceMetricsRead(BaseModel):
    attendance_score: int = 0
    task_score: int = 0
    days_present: int = 0
    tasks_completed: int = 0


class EmployeePerformanceRead(BaseModel):
    rank: int = 0
    tier: str
    total_employees: int = 0
    score: int = 0
    source: Literal["snapshot", "live"]
    metrics: EmployeePerformanceMetricsRead
    trend: list[EmployeeScoreHistoryPointRead] = Field(default_factory=list)


class CompanyPerformanceRead(BaseModel):
    source: Literal["snapshot", "live"]
    target_date: date
    items: list[LeaderboardEntryRead] = Field(default_factory=list)
