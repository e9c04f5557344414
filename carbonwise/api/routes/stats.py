"""
stats.py — Dashboard Statistics API Routes
===========================================
Endpoints:
    GET /api/v1/stats/dashboard          → today / week / month vs the period before, annual projection
    GET /api/v1/stats/charts             → emissions timeline and category breakdown (week | month | year)
    GET /api/v1/stats/comparison         → annual projection vs regional, global and 2030 target figures
    GET /api/v1/stats/summary/{date}     → one day's activities, total and carbon saved
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from carbonwise.api.deps import get_current_user, get_repository
from carbonwise.api.schemas.activities import ActivityResponse
from carbonwise.api.schemas.stats import (
    ChartsResponse,
    ComparisonResponse,
    DashboardResponse,
    DaySummaryResponse,
    DaySummaryTotals,
    UserSnapshot,
)
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import User
from carbonwise.features.stats import (
    ChartRange,
    carbon_saved,
    load_annual_projection,
    load_charts,
    load_dashboard,
    regional_comparison,
)

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    stats = await load_dashboard(repository, user.id)
    return DashboardResponse(**stats, user=UserSnapshot(xp=user.xp, level=user.level, streak=user.streak))


@router.get("/charts", response_model=ChartsResponse)
async def get_charts(
    chart_range: ChartRange = Query("week", alias="range"),
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    return ChartsResponse(**await load_charts(repository, user.id, chart_range))


@router.get("/comparison", response_model=ComparisonResponse)
async def get_comparison(
    region: str = Query("default", max_length=32),
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    annual = await load_annual_projection(repository, user.id)
    return ComparisonResponse(**regional_comparison(annual, region))


@router.get("/summary/{day}", response_model=DaySummaryResponse)
async def get_day_summary(
    day: date,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    activities = await repository.get_activities(user.id, since=day, until=day)
    return DaySummaryResponse(
        date=day,
        activities=[ActivityResponse.model_validate(a) for a in activities],
        summary=DaySummaryTotals(
            count=len(activities),
            total_emissions=round(sum(a.emissions for a in activities), 1),
            carbon_saved=round(carbon_saved(activities), 1),
        ),
    )
