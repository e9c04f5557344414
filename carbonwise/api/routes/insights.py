"""
insights.py — Carbon Insights API Routes
=========================================
AI-generated insights when the local model is reachable, rule-based
insights otherwise.  The ``source`` field tells the two apart.

Endpoints:
    GET  /api/v1/insights                      → payload + statistics (?refresh=&limit=)
    POST /api/v1/insights/refresh              → bypass the AI cache
    GET  /api/v1/insights/analysis/trends      → week-over-week trends
    GET  /api/v1/insights/category/{category}  → one category's insights + tips
    GET  /api/v1/insights/{insight_id}         → single insight with tips & resources
    POST /api/v1/insights/{insight_id}/dismiss → hide an insight for 30 days
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from carbonwise.api.deps import get_current_user, get_insight_service
from carbonwise.api.schemas.insights import (
    CategoryInsightsResponse,
    DismissResponse,
    InsightDetailResponse,
    InsightRecord,
    InsightResource,
    InsightsResponse,
    InsightStatistics,
    RefreshResponse,
    TrendSchema,
    TrendsResponse,
)
from carbonwise.database.session import User
from carbonwise.features.emission_calculator import normalize_category
from carbonwise.features.insight_tips import category_tips, insight_resources, insight_tips
from carbonwise.features.trend_detector import encouragement_for
from carbonwise.services.insight_service import InsightService

router = APIRouter()


@router.get("", response_model=InsightsResponse)
async def get_insights(
    refresh: bool = False,
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    payload = await service.get_insights(user.id, force_refresh=refresh)
    statistics = await service.statistics(user.id)
    data = payload.model_dump()
    data["insights"] = data["insights"][:limit]
    return InsightsResponse(**data, statistics=InsightStatistics(**statistics))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_insights(
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    payload = await service.get_insights(user.id, force_refresh=True)
    return RefreshResponse(
        source=payload.source,
        generated_at=payload.generated_at,
        message="AI insights regenerated" if payload.source == "ai" else "Rule-based insights regenerated",
    )


@router.get("/analysis/trends", response_model=TrendsResponse)
async def get_trends(
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    trends = await service.trends(user.id)
    return TrendsResponse(
        trends=[TrendSchema(**t.to_dict()) for t in trends],
        encouragement=encouragement_for(trends),
    )


@router.get("/category/{category}", response_model=CategoryInsightsResponse)
async def get_category_insights(
    category: str,
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    emissions, insights = await service.category_insights(user.id, category)
    return CategoryInsightsResponse(
        category=normalize_category(category),
        emissions=round(emissions, 1),
        insights=[InsightRecord(**i.to_dict()) for i in insights],
        tips=category_tips(category),
    )


@router.get("/{insight_id}", response_model=InsightDetailResponse)
async def get_insight(
    insight_id: str,
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    record = await service.find_insight(user.id, insight_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Insight not found")
    return InsightDetailResponse(
        **record.model_dump(),
        tips=insight_tips(insight_id),
        resources=[InsightResource(**r) for r in insight_resources(insight_id)],
    )


@router.post("/{insight_id}/dismiss", response_model=DismissResponse)
async def dismiss_insight(
    insight_id: str,
    user: User = Depends(get_current_user),
    service: InsightService = Depends(get_insight_service),
):
    expires_at = await service.dismiss(user.id, insight_id)
    return DismissResponse(insight_id=insight_id, expires_at=expires_at)
