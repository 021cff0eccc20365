from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class AnalyticsFilters:
    department_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive range of local calendar days in one company timezone."""

    start_date: date
    end_date: date
    timezone: ZoneInfo

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def iter_days(self):
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)

    def utc_bounds(self) -> tuple[datetime, datetime]:
        """Half-open ``[start, end)`` UTC interval covering every local day."""
        return (
            local_day_start_utc(self.start_date, self.timezone),
            local_day_start_utc(self.end_date + timedelta(days=1), self.timezone),
        )

    def contains(self, day_value: date | None) -> bool:
        return day_value is not None and self.start_date <= day_value <= self.end_date


def normalize_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_today(tz: ZoneInfo, now_utc: datetime | None = None) -> date:
    reference = normalize_utc(now_utc) or datetime.now(timezone.utc)
    return reference.astimezone(tz).date()


def local_day(value: datetime | None, tz: ZoneInfo) -> date | None:
    normalized = normalize_utc(value)
    if normalized is None:
        return None
    return normalized.astimezone(tz).date()


def local_day_start_utc(day_value: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day_value, time.min, tzinfo=tz).astimezone(timezone.utc)


def resolve_date_range(
    tz: ZoneInfo,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    default_days: int = 30,
    now_utc: datetime | None = None,
) -> DateRange:
    today = local_today(tz, now_utc)
    default_days = max(1, int(default_days))
    effective_start = start_date or today - timedelta(days=default_days - 1)
    effective_end = end_date or today
    if effective_end < effective_start:
        effective_start, effective_end = effective_end, effective_start
    return DateRange(start_date=effective_start, end_date=effective_end, timezone=tz)
