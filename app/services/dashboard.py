from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from app.errors import AnalyticsUnavailableError, ApiError
from app.schemas import (
    AnalyticsFiltersRead,
    AttendanceMetricsRead,
    DashboardResponse,
    GrowthMetricsRead,
    OverviewRead,
    TaskMetricsRead,
)
from app.services.analytics_metrics import (
    get_attendance_metrics,
    get_department_options,
    get_growth_metrics,
    get_overview_stats,
    get_task_metrics,
)
from app.services.date_range import AnalyticsFilters, DateRange
from app.services.performance import get_company_performance, resolve_performance_window, to_leaderboard_entry
from app.services.schema_guard import SchemaCapabilities, get_schema_capabilities
from app.services.score_trend import get_company_score_trend
from app.services.scoring_config import ScoringConfig, load_scoring_config
from app.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSection:
    name: str
    loader: Callable[[Session], Any]
    default: Callable[[], Any]


def _run_in_session(session_factory: sessionmaker[Session], loader: Callable[[Session], Any]) -> Any:
    with session_factory() as db:
        return loader(db)


def _resolve_context(
    session_factory: sessionmaker[Session],
    company_id: int,
    filters: AnalyticsFilters,
    now_utc: datetime,
) -> tuple[ScoringConfig, DateRange]:
    with session_factory() as db:
        config = load_scoring_config(db, company_id)
    return config, resolve_performance_window(config, filters, now_utc=now_utc)


def build_sections(
    company_id: int,
    filters: AnalyticsFilters,
    *,
    config: ScoringConfig,
    window: DateRange,
    capabilities: SchemaCapabilities,
    leaderboard_limit: int,
    now_utc: datetime,
) -> list[DashboardSection]:
    def leaderboard(db: Session) -> list[Any]:
        performance = get_company_performance(
            db,
            company_id,
            filters,
            config=config,
            window=window,
            capabilities=capabilities,
            now_utc=now_utc,
        )
        return [to_leaderboard_entry(entry) for entry in performance.entries[:leaderboard_limit]]

    return [
        DashboardSection("departments", lambda db: get_department_options(db, company_id), list),
        DashboardSection(
            "overview",
            lambda db: get_overview_stats(db, config, filters, capabilities=capabilities, now_utc=now_utc),
            OverviewRead,
        ),
        DashboardSection("leaderboard", leaderboard, list),
        DashboardSection(
            "attendance",
            lambda db: get_attendance_metrics(db, config, window, filters),
            AttendanceMetricsRead,
        ),
        DashboardSection(
            "tasks",
            lambda db: get_task_metrics(db, config, window, filters, capabilities=capabilities, now_utc=now_utc),
            TaskMetricsRead,
        ),
        DashboardSection("growth", lambda db: get_growth_metrics(db, config, now_utc=now_utc), GrowthMetricsRead),
        DashboardSection(
            "score_trend",
            lambda db: get_company_score_trend(db, company_id, filters, config=config, now_utc=now_utc).points,
            list,
        ),
    ]


async def build_dashboard(
    session_factory: sessionmaker[Session],
    company_id: int,
    filters: AnalyticsFilters | None = None,
    *,
    capabilities: SchemaCapabilities | None = None,
    max_workers: int | None = None,
    leaderboard_limit: int | None = None,
    now_utc: datetime | None = None,
) -> DashboardResponse:
    """Load every dashboard section concurrently, each on its own session.

    A failing section is logged and replaced by its empty default; the call
    only fails when the shared company context cannot be resolved or when
    every section failed.
    """
    settings = get_settings()
    filters = filters or AnalyticsFilters()
    capabilities = capabilities or get_schema_capabilities()
    max_workers = max(1, max_workers or settings.analytics_dashboard_workers)
    leaderboard_limit = max(1, leaderboard_limit or settings.analytics_leaderboard_limit)
    now_utc = now_utc or datetime.now(timezone.utc)

    try:
        config, window = await asyncio.to_thread(_resolve_context, session_factory, company_id, filters, now_utc)
    except ApiError:
        raise
    except Exception as exc:
        logger.exception("dashboard_context_failed", extra={"company_id": company_id})
        raise AnalyticsUnavailableError() from exc

    sections = build_sections(
        company_id,
        filters,
        config=config,
        window=window,
        capabilities=capabilities,
        leaderboard_limit=leaderboard_limit,
        now_utc=now_utc,
    )
    semaphore = asyncio.Semaphore(max_workers)

    async def run_section(section: DashboardSection) -> tuple[str, Any, bool]:
        async with semaphore:
            try:
                value = await asyncio.to_thread(_run_in_session, session_factory, section.loader)
            except Exception:
                logger.exception(
                    "dashboard_section_failed",
                    extra={"company_id": company_id, "section": section.name},
                )
                return section.name, section.default(), False
        return section.name, value, True

    outcomes = await asyncio.gather(*(run_section(section) for section in sections))
    if not any(ok for _, _, ok in outcomes):
        raise AnalyticsUnavailableError()

    payload: dict[str, Any] = {name: value for name, value, _ in outcomes}
    degraded = [name for name, _, ok in outcomes if not ok]
    if degraded:
        logger.warning(
            "dashboard_degraded",
            extra={"company_id": company_id, "degraded_sections": degraded},
        )

    return DashboardResponse(
        filters=AnalyticsFiltersRead(
            department_id=filters.department_id,
            start_date=window.start_date,
            end_date=window.end_date,
        ),
        degraded_sections=degraded,
        **payload,
    )
