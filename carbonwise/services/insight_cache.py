"""
CarbonWise – AI Insight Cache
==============================
Per-user store for the last successful AI payload.

Only AI payloads are cached; rule-based payloads are cheap and always
rebuilt.  ``put`` is a plain delete-then-insert: two requests for the same
user that both miss will both call the AI service and the later write
wins.  A per-user lock around ``put`` is where that would be fixed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.api.schemas.insights import InsightPayload
from carbonwise.database.repository import AI_CACHE_TYPE
from carbonwise.database.session import Insight, as_utc, utcnow


class InsightCache(ABC):
    """Abstract cache of one ``InsightPayload`` per user."""

    @abstractmethod
    async def get(self, user_id: int, max_age: timedelta) -> InsightPayload | None:
        """Return the cached payload if younger than ``max_age``, else None."""

    @abstractmethod
    async def put(self, user_id: int, payload: InsightPayload) -> None:
        """Replace the user's cached payload."""

    @abstractmethod
    async def invalidate(self, user_id: int) -> None:
        """Drop whatever is cached for the user."""


class SqlInsightCache(InsightCache):
    """Cache rows live in the ``insights`` table with ``insight_type = 'ai_generated'``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int, max_age: timedelta) -> InsightPayload | None:
        result = await self.session.execute(
            select(Insight)
            .where(
                Insight.user_id == user_id,
                Insight.insight_type == AI_CACHE_TYPE,
                Insight.is_dismissed.is_(False),
            )
            .order_by(desc(Insight.created_at))
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        if utcnow() - as_utc(row.created_at) >= max_age:
            logger.debug("Insight cache stale for user {}", user_id)
            return None

        try:
            return InsightPayload.model_validate_json(row.payload)
        except ValidationError as exc:
            # corrupt rows behave like a miss
            logger.warning("Discarding unreadable insight cache for user {}: {}", user_id, exc.error_count())
            return None

    async def put(self, user_id: int, payload: InsightPayload) -> None:
        await self.invalidate(user_id)
        top = payload.top_insight
        self.session.add(Insight(
            user_id=user_id,
            insight_type=AI_CACHE_TYPE,
            category=top.category if top else "general",
            title=top.title if top else "AI Insights",
            payload=payload.model_dump_json(),
            priority=10,
        ))
        await self.session.flush()
        logger.info("🗄️ Cached AI insights for user {}", user_id)

    async def invalidate(self, user_id: int) -> None:
        await self.session.execute(
            delete(Insight).where(Insight.user_id == user_id, Insight.insight_type == AI_CACHE_TYPE)
        )
