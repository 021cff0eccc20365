from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from app.models import TaskStatus
from app.services.date_range import DateRange, normalize_utc
from app.services.directory import EmployeeProfile

DEFAULT_LATE_PENALTY = 5.0


class CheckInLike(Protocol):
    user_id: int
    clock_in_time: datetime | None
    is_late_arrival: bool | None


@dataclass(frozen=True)
class DailyCheckIn:
    user_id: int
    day: date
    clock_in_utc: datetime
    is_late: bool


@dataclass(frozen=True)
class AttendanceTally:
    present_days: int = 0
    late_days: int = 0

    @property
    def on_time_days(self) -> int:
        return self.present_days - self.late_days


@dataclass(frozen=True)
class TaskTally:
    due_total: int = 0
    completed_on_time: int = 0


@dataclass(frozen=True)
class EmployeeScoreResult:
    user_id: int
    attendance_score: float
    task_score: float
    overall_score: float
    profile: EmployeeProfile | None = None

    @property
    def display_attendance(self) -> int:
        return display_score(self.attendance_score)

    @property
    def display_task(self) -> int:
        return display_score(self.task_score)

    @property
    def display_overall(self) -> int:
        return display_score(self.overall_score)


def clamp_score(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return max(0.0, min(100.0, value))


def display_score(value: float | None) -> int:
    """Round half up, the way dashboards have always shown scores."""
    if value is None:
        return 0
    return int(math.floor(clamp_score(float(value)) + 0.5))


def count_expected_days(start_date: date, end_date: date, working_days: Iterable[int]) -> int:
    working = set(working_days)
    if not working or end_date < start_date:
        return 0
    count = 0
    current = start_date
    while current <= end_date:
        if current.isoweekday() in working:
            count += 1
        current += timedelta(days=1)
    return count


def collapse_daily_checkins(records: Iterable[CheckInLike], tz: ZoneInfo) -> list[DailyCheckIn]:
    """Keep one check-in per employee and local day; the latest clock-in wins."""
    latest: dict[tuple[int, date], DailyCheckIn] = {}
    for record in records:
        clock_in = normalize_utc(record.clock_in_time)
        if clock_in is None:
            raise ValueError(f"attendance record for user {record.user_id} has no clock-in time")
        day_value = clock_in.astimezone(tz).date()
        key = (record.user_id, day_value)
        current = latest.get(key)
        if current is None or clock_in >= current.clock_in_utc:
            latest[key] = DailyCheckIn(
                user_id=record.user_id,
                day=day_value,
                clock_in_utc=clock_in,
                is_late=bool(record.is_late_arrival),
            )
    return sorted(latest.values(), key=lambda item: (item.user_id, item.day))


def tally_attendance(checkins: Iterable[DailyCheckIn], window: DateRange | None = None) -> AttendanceTally:
    present = 0
    late = 0
    for item in checkins:
        if window is not None and not window.contains(item.day):
            continue
        present += 1
        if item.is_late:
            late += 1
    return AttendanceTally(present_days=present, late_days=late)


def calculate_attendance_score(
    *,
    present_days: int,
    late_days: int,
    expected_days: int,
    late_penalty: float = DEFAULT_LATE_PENALTY,
) -> float:
    if expected_days <= 0:
        return 0.0
    base = (max(0, present_days) / expected_days) * 100
    return clamp_score(base - max(0, late_days) * late_penalty)


def is_completed_on_time(status: TaskStatus | str | None, completed_at: datetime | None, due_date: datetime | None) -> bool:
    if status is None or TaskStatus(status) != TaskStatus.COMPLETED:
        return False
    completed = normalize_utc(completed_at)
    due = normalize_utc(due_date)
    if completed is None or due is None:
        return False
    return completed <= due


def calculate_task_score(*, due_total: int, completed_on_time: int) -> float:
    if due_total <= 0:
        return 0.0
    return clamp_score((max(0, completed_on_time) / due_total) * 100)


def calculate_overall_score(
    *,
    attendance_score: float,
    task_score: float,
    attendance_weight: float,
    task_weight: float,
) -> float:
    attendance_weight = max(0.0, attendance_weight)
    task_weight = max(0.0, task_weight)
    total_weight = attendance_weight + task_weight
    if total_weight <= 0:
        return 0.0
    weighted = attendance_score * attendance_weight + task_score * task_weight
    return clamp_score(weighted / total_weight)


def score_employee(
    *,
    user_id: int,
    attendance: AttendanceTally,
    tasks: TaskTally,
    expected_days: int,
    attendance_weight: float,
    task_weight: float,
    late_penalty: float = DEFAULT_LATE_PENALTY,
    profile: EmployeeProfile | None = None,
) -> EmployeeScoreResult:
    attendance_score = calculate_attendance_score(
        present_days=attendance.present_days,
        late_days=attendance.late_days,
        expected_days=expected_days,
        late_penalty=late_penalty,
    )
    task_score = calculate_task_score(due_total=tasks.due_total, completed_on_time=tasks.completed_on_time)
    overall_score = calculate_overall_score(
        attendance_score=attendance_score,
        task_score=task_score,
        attendance_weight=attendance_weight,
        task_weight=task_weight,
    )
    return EmployeeScoreResult(
        user_id=user_id,
        attendance_score=attendance_score,
        task_score=task_score,
        overall_score=overall_score,
        profile=profile,
    )
