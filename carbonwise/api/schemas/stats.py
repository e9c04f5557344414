from datetime import date as Date
from typing import List, Literal

from pydantic import BaseModel

from carbonwise.api.schemas.activities import ActivityResponse


class PeriodStats(BaseModel):
    emissions: float
    change: float
    trend: Literal["up", "down"]


class AnnualProjection(BaseModel):
    projection: float
    unit: str = "tons"


class GlobalComparison(BaseModel):
    global_percent: int
    is_below: bool


class UserSnapshot(BaseModel):
    xp: int
    level: int
    streak: int


class DashboardResponse(BaseModel):
    today: PeriodStats
    week: PeriodStats
    month: PeriodStats
    annual: AnnualProjection
    comparison: GlobalComparison
    user: UserSnapshot


class Timeline(BaseModel):
    labels: List[str]
    data: List[float]


class CategoryTotal(BaseModel):
    category: str
    total: float
    percentage: int


class ChartsResponse(BaseModel):
    range: Literal["week", "month", "year"]
    timeline: Timeline
    categories: List[CategoryTotal]


class Benchmark(BaseModel):
    annual_tons: float
    percentage: int


class ComparisonResponse(BaseModel):
    region: str
    user: Benchmark
    regional: Benchmark
    global_average: Benchmark
    target: Benchmark


class DaySummaryTotals(BaseModel):
    count: int
    total_emissions: float
    carbon_saved: float


class DaySummaryResponse(BaseModel):
    date: Date
    activities: List[ActivityResponse]
    summary: DaySummaryTotals
