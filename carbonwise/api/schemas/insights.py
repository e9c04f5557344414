from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class InsightRecord(BaseModel):
    id: str
    title: str
    description: str
    category: str
    potential_savings: float = 0.0
    priority: int = 5


class TopInsight(BaseModel):
    title: str
    description: str
    category: str
    potential_savings: float = 0.0
    weekly_savings: Optional[float] = None


class WeeklyChallenge(BaseModel):
    title: str
    description: str
    target_savings: Optional[float] = None


class TrendSchema(BaseModel):
    category: str
    change_percent: int
    trend: Literal["positive", "negative", "neutral"]
    message: str
    this_week: float = 0.0
    last_week: float = 0.0


class InsightPayload(BaseModel):
    """What the insights endpoint serves, and what the AI cache stores."""

    model_config = ConfigDict(protected_namespaces=())

    source: Literal["ai", "rules"]
    model: Optional[str] = None
    summary: str
    top_insight: Optional[TopInsight] = None
    insights: List[InsightRecord] = Field(default_factory=list)
    trends: List[TrendSchema] = Field(default_factory=list)
    encouragement: str = ""
    weekly_challenge: Optional[WeeklyChallenge] = None
    generated_at: datetime


class CategoryShare(BaseModel):
    category: str
    emissions: float
    percentage: int


class WeeklyComparison(BaseModel):
    this_week: float
    last_week: float
    change_percent: float
    trend: Literal["up", "down"]


class InsightStatistics(BaseModel):
    total_emissions: float
    activity_count: int
    category_breakdown: List[CategoryShare]
    weekly_comparison: WeeklyComparison
    worst_category: Optional[str] = None
    best_category: Optional[str] = None


class InsightsResponse(InsightPayload):
    statistics: InsightStatistics


class RefreshResponse(BaseModel):
    source: Literal["ai", "rules"]
    generated_at: datetime
    message: str


class InsightResource(BaseModel):
    title: str
    type: str


class InsightDetailResponse(InsightRecord):
    tips: List[str] = Field(default_factory=list)
    resources: List[InsightResource] = Field(default_factory=list)


class CategoryInsightsResponse(BaseModel):
    category: str
    emissions: float
    insights: List[InsightRecord]
    tips: List[str]


class DismissResponse(BaseModel):
    insight_id: str
    dismissed: bool = True
    expires_at: datetime


class TrendsResponse(BaseModel):
    trends: List[TrendSchema]
    encouragement: str
