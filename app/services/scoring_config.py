from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import company_not_found
from app.models import Company, CompanySettings
from app.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_WORKING_DAYS: frozenset[int] = frozenset({1, 2, 3, 4, 5})
UTC_ZONE = ZoneInfo("UTC")


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    company_id: int
    timezone: ZoneInfo
    attendance_weight: float
    task_weight: float
    working_days: frozenset[int]
    late_penalty: float

    @property
    def timezone_name(self) -> str:
        return self.timezone.key


def resolve_timezone(name: str | None) -> ZoneInfo:
    raw_name = (name or "").strip()
    if raw_name:
        try:
            return ZoneInfo(raw_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("company_timezone_invalid", extra={"timezone": raw_name})
    fallback = (get_settings().default_timezone or "").strip()
    if fallback:
        try:
            return ZoneInfo(fallback)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return UTC_ZONE


def _weight(raw: Any, default: float) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return default
    if raw < 0:
        return default
    return float(raw)


def _working_days(raw: Any) -> frozenset[int]:
    if not isinstance(raw, (list, tuple)):
        return DEFAULT_WORKING_DAYS
    days = frozenset(int(item) for item in raw if isinstance(item, int) and 1 <= item <= 7)
    return days or DEFAULT_WORKING_DAYS


def build_scoring_config(company: Company, company_settings: CompanySettings | None) -> ScoringConfig:
    settings = get_settings()
    kpi: dict[str, Any] = {}
    working_days = DEFAULT_WORKING_DAYS
    if company_settings is not None:
        if isinstance(company_settings.kpi_settings, dict):
            kpi = company_settings.kpi_settings
        working_days = _working_days(company_settings.working_days)

    return ScoringConfig(
        company_id=company.id,
        timezone=resolve_timezone(company.timezone),
        attendance_weight=_weight(kpi.get("attendanceWeight"), float(settings.analytics_default_attendance_weight)),
        task_weight=_weight(kpi.get("taskCompletionWeight"), float(settings.analytics_default_task_weight)),
        working_days=working_days,
        late_penalty=_weight(kpi.get("latePenaltyPoints"), float(settings.analytics_late_penalty_points)),
    )


def load_scoring_config(db: Session, company_id: int) -> ScoringConfig:
    row = db.execute(
        select(Company, CompanySettings)
        .outerjoin(CompanySettings, CompanySettings.company_id == Company.id)
        .where(Company.id == company_id, Company.deleted_at.is_(None))
    ).first()
    if row is None:
        raise company_not_found(company_id)
    company, company_settings = row
    return build_scoring_config(company, company_settings)
