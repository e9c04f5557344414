"""
CarbonWise – Insight Orchestrator
==================================
Decides where a user's insights come from:

  1. cached AI payload younger than the freshness window → returned as-is
  2. otherwise ask the AI adapter (features + trends + active goals);
     a payload replaces the cache and is returned
  3. otherwise build a rule-based payload (rule engine + trend detector +
     summary generator).  Rule payloads are never cached.

Callers only see the ``source`` tag; AI failures never surface as errors.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

from loguru import logger

from carbonwise.api.schemas.insights import (
    InsightPayload,
    InsightRecord,
    TopInsight,
    TrendSchema,
)
from carbonwise.config import settings
from carbonwise.database.repository import ActivityRepository
from carbonwise.features.emission_calculator import normalize_category
from carbonwise.features.extractor import FeatureVector, load_features
from carbonwise.features.recommendation_engine import Insight, generate_insights
from carbonwise.features.summary import build_statistics, generate_summary
from carbonwise.features.trend_detector import TrendRecord, encouragement_for, load_trends
from carbonwise.services.ai_client import AIInsightAdapter, AIUnavailable
from carbonwise.services.insight_cache import InsightCache


class InsightService:
    """Per-request orchestrator; cheap to build, holds no state between requests."""

    def __init__(
        self,
        repository: ActivityRepository,
        cache: InsightCache,
        ai_adapter: AIInsightAdapter | None = None,
        *,
        cache_max_age: timedelta | None = None,
        rules_limit: int | None = None,
        window_days: int | None = None,
        dismiss_days: int | None = None,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.ai_adapter = ai_adapter
        self.cache_max_age = cache_max_age or settings.insight_cache_ttl
        self.rules_limit = rules_limit or settings.rules_insight_limit
        self.window_days = window_days or settings.feature_window_days
        self.dismiss_days = dismiss_days or settings.insight_dismiss_days

    # ── Main entry point ─────────────────────────────────────────────────────

    async def get_insights(self, user_id: int, force_refresh: bool = False) -> InsightPayload:
        if not force_refresh:
            cached = await self.cache.get(user_id, self.cache_max_age)
            if cached is not None and cached.source == "ai":
                logger.debug("Insight cache hit for user {}", user_id)
                return cached

        today = date.today()
        features = await self.features(user_id, today)
        trends = await self.trends(user_id, today)

        if self.ai_adapter is not None:
            goals = await self.repository.get_active_goals(user_id)
            result = await self.ai_adapter.request_ai_insights(features, trends, goals)
            if not isinstance(result, AIUnavailable):
                await self.cache.put(user_id, result)
                return result
            logger.info("AI insights unavailable for user {} ({}), using rules", user_id, result.reason)

        return await self._rules_payload(user_id, features, trends)

    async def _rules_payload(
        self,
        user_id: int,
        features: FeatureVector,
        trends: list[TrendRecord],
    ) -> InsightPayload:
        selected = generate_insights(features)
        # savings cover every selected insight, not just the ones displayed
        summary = generate_summary(features, selected)
        dismissed = await self.repository.get_dismissed_insight_ids(user_id)
        insights = [i for i in selected if i.id not in dismissed][: self.rules_limit]

        top = insights[0] if insights else None
        return InsightPayload(
            source="rules",
            summary=summary.summary,
            top_insight=TopInsight(
                title=top.title,
                description=top.description,
                category=top.category,
                potential_savings=top.potential_savings,
            ) if top else None,
            insights=[InsightRecord(**i.to_dict()) for i in insights],
            trends=[TrendSchema(**t.to_dict()) for t in trends],
            encouragement=encouragement_for(trends),
            generated_at=datetime.now(timezone.utc),
        )

    # ── Building blocks shared with the routes ───────────────────────────────

    async def features(self, user_id: int, today: date | None = None) -> FeatureVector:
        return await load_features(self.repository, user_id, as_of=today, window_days=self.window_days)

    async def trends(self, user_id: int, today: date | None = None) -> list[TrendRecord]:
        return await load_trends(self.repository, user_id, today)

    async def rule_insights(self, user_id: int) -> list[Insight]:
        """Every rule insight for the user, dismissed ones included."""
        return generate_insights(await self.features(user_id))

    async def find_insight(self, user_id: int, insight_id: str) -> InsightRecord | None:
        """Look an insight up among the rule insights, then in the cached AI payload."""
        for insight in await self.rule_insights(user_id):
            if insight.id == insight_id:
                return InsightRecord(**insight.to_dict())
        cached = await self.cache.get(user_id, self.cache_max_age)
        if cached is not None:
            return next((i for i in cached.insights if i.id == insight_id), None)
        return None

    async def category_insights(self, user_id: int, category: str) -> tuple[float, list[Insight]]:
        features = await self.features(user_id)
        cat = normalize_category(category)
        return features.emissions_for(cat), [i for i in generate_insights(features) if i.category == cat]

    async def statistics(self, user_id: int) -> dict[str, Any]:
        today = date.today()
        features = await self.features(user_id, today)
        activities = await self.repository.get_activities(user_id, since=today - timedelta(days=14))
        return build_statistics(features, activities, today)

    async def dismiss(self, user_id: int, insight_id: str) -> datetime:
        """
        Hide an insight for ``dismiss_days``.

        Dismissing one of the AI insights also drops the cached AI payload so
        it is not served again unchanged.
        """
        expires_at = await self.repository.dismiss_insight(user_id, insight_id, days=self.dismiss_days)
        if insight_id.startswith("ai-"):
            await self.cache.invalidate(user_id)
        return expires_at
