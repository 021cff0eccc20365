from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, sessionmaker

from app.db import get_db, get_session_factory
from app.schemas import (
    CompanyPerformanceRead,
    DashboardResponse,
    EmployeePerformanceRead,
    OverviewRead,
    ScoreTrendRead,
)
from app.services.analytics_metrics import get_overview_stats
from app.services.dashboard import build_dashboard
from app.services.date_range import AnalyticsFilters
from app.services.performance import get_company_performance, get_employee_performance, to_leaderboard_entry
from app.services.schema_guard import get_schema_capabilities
from app.services.score_trend import get_company_score_trend
from app.services.scoring_config import load_scoring_config

router = APIRouter(tags=["analytics"])


def analytics_filters(
    department_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> AnalyticsFilters:
    return AnalyticsFilters(department_id=department_id, start_date=start_date, end_date=end_date)


@router.get(
    "/api/companies/{company_id}/analytics/dashboard",
    response_model=DashboardResponse,
)
async def company_dashboard(
    company_id: int,
    filters: AnalyticsFilters = Depends(analytics_filters),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> DashboardResponse:
    return await build_dashboard(
        session_factory,
        company_id,
        filters,
        capabilities=get_schema_capabilities(),
    )


@router.get(
    "/api/companies/{company_id}/analytics/employees",
    response_model=CompanyPerformanceRead,
)
def company_employee_performance(
    company_id: int,
    filters: AnalyticsFilters = Depends(analytics_filters),
    db: Session = Depends(get_db),
) -> CompanyPerformanceRead:
    performance = get_company_performance(db, company_id, filters, capabilities=get_schema_capabilities())
    return CompanyPerformanceRead(
        source=performance.source,
        target_date=performance.target_date,
        items=[to_leaderboard_entry(entry) for entry in performance.entries],
    )


@router.get(
    "/api/companies/{company_id}/analytics/employees/{user_id}",
    response_model=EmployeePerformanceRead,
)
def employee_performance(
    company_id: int,
    user_id: int,
    db: Session = Depends(get_db),
) -> EmployeePerformanceRead:
    return get_employee_performance(db, company_id, user_id, capabilities=get_schema_capabilities())


@router.get(
    "/api/companies/{company_id}/analytics/overview",
    response_model=OverviewRead,
)
def company_overview(
    company_id: int,
    filters: AnalyticsFilters = Depends(analytics_filters),
    db: Session = Depends(get_db),
) -> OverviewRead:
    config = load_scoring_config(db, company_id)
    return get_overview_stats(db, config, filters, capabilities=get_schema_capabilities())


@router.get(
    "/api/companies/{company_id}/analytics/score-trend",
    response_model=ScoreTrendRead,
)
def company_score_trend(
    company_id: int,
    filters: AnalyticsFilters = Depends(analytics_filters),
    db: Session = Depends(get_db),
) -> ScoreTrendRead:
    return get_company_score_trend(db, company_id, filters)
