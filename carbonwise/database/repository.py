"""
CarbonWise – Read Repository
=============================
Query helpers the insight pipeline and the activity routes share.  Every
method takes an open ``AsyncSession``; commits are left to ``get_db``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Sequence

from loguru import logger
from sqlalchemy import Row, and_, case, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.database.session import (
    Activity,
    CalculatorProfile,
    Goal,
    Insight,
    User,
    UserBadge,
    as_utc,
    utcnow,
)
from carbonwise.features.emission_calculator import category_aliases

AI_CACHE_TYPE = "ai_generated"


class ActivityRepository:
    """Thin async data-access layer over one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Users ────────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    # ── Activities ───────────────────────────────────────────────────────────

    async def get_activities(
        self,
        user_id: int,
        since: date | None = None,
        until: date | None = None,
    ) -> Sequence[Activity]:
        """Activities on or after ``since`` (and on or before ``until``), newest first."""
        stmt = select(Activity).where(Activity.user_id == user_id)
        if since is not None:
            stmt = stmt.where(Activity.date >= since)
        if until is not None:
            stmt = stmt.where(Activity.date <= until)
        stmt = stmt.order_by(desc(Activity.date), desc(Activity.created_at))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_activities(
        self,
        user_id: int,
        *,
        on_date: date | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Activity], int]:
        """Filtered page of activities plus the unpaged total."""
        conditions = [Activity.user_id == user_id]
        if on_date is not None:
            conditions.append(Activity.date == on_date)
        else:
            if start_date is not None:
                conditions.append(Activity.date >= start_date)
            if end_date is not None:
                conditions.append(Activity.date <= end_date)
        if category:
            conditions.append(Activity.category.in_(category_aliases(category)))

        total = await self.session.scalar(
            select(func.count()).select_from(Activity).where(*conditions)
        )
        result = await self.session.execute(
            select(Activity)
            .where(*conditions)
            .order_by(desc(Activity.date), desc(Activity.created_at))
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all(), int(total or 0)

    async def get_activity(self, user_id: int, activity_id: int) -> Activity | None:
        result = await self.session.execute(
            select(Activity).where(Activity.id == activity_id, Activity.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def count_activities(self, user_id: int) -> int:
        return int(await self.session.scalar(
            select(func.count()).select_from(Activity).where(Activity.user_id == user_id)
        ) or 0)

    async def count_distinct_days(self, user_id: int) -> int:
        return int(await self.session.scalar(
            select(func.count(func.distinct(Activity.date))).where(Activity.user_id == user_id)
        ) or 0)

    async def count_keyword_activities(
        self,
        user_id: int,
        category: str,
        keywords: Sequence[str],
        *,
        distinct_days: bool = False,
    ) -> int:
        """Activities in ``category`` whose description mentions any keyword."""
        target = func.count(func.distinct(Activity.date)) if distinct_days else func.count(Activity.id)
        stmt = select(target).where(
            Activity.user_id == user_id,
            Activity.category.in_(category_aliases(category)),
            or_(*(Activity.description.ilike(f"%{kw}%") for kw in keywords)),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def total_emissions(self, user_id: int) -> float:
        return float(await self.session.scalar(
            select(func.coalesce(func.sum(Activity.emissions), 0.0)).where(Activity.user_id == user_id)
        ) or 0.0)

    # ── Leaderboards ─────────────────────────────────────────────────────────

    async def count_users(self) -> int:
        return int(await self.session.scalar(select(func.count()).select_from(User)) or 0)

    async def xp_rank(self, xp: int) -> int:
        """1 + the number of users with strictly more XP."""
        above = await self.session.scalar(select(func.count()).select_from(User).where(User.xp > xp))
        return int(above or 0) + 1

    async def xp_leaderboard(self, limit: int | None = None, user_id: int | None = None) -> Sequence[Row]:
        """
        Users by XP (highest first) with badge count, lifetime emissions and
        tracked days.  Pass ``user_id`` to fetch a single user's row.
        """
        badge_count = (
            select(func.count(UserBadge.id))
            .where(UserBadge.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        total_emissions = (
            select(func.coalesce(func.sum(Activity.emissions), 0.0))
            .where(Activity.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        days_tracked = (
            select(func.count(func.distinct(Activity.date)))
            .where(Activity.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        stmt = select(
            User,
            badge_count.label("badge_count"),
            total_emissions.label("total_emissions"),
            days_tracked.label("days_tracked"),
        )
        if user_id is not None:
            stmt = stmt.where(User.id == user_id)
        stmt = stmt.order_by(desc(User.xp), User.id).limit(limit)
        return (await self.session.execute(stmt)).all()

    async def weekly_emissions_by_user(self, today: date) -> Sequence[Row]:
        """This week's and last week's emissions for every user who has logged anything."""
        week_ago = today - timedelta(days=7)
        two_weeks_ago = today - timedelta(days=14)
        this_week = func.coalesce(func.sum(
            case((and_(Activity.date >= week_ago, Activity.date <= today), Activity.emissions), else_=0.0)
        ), 0.0)
        last_week = func.coalesce(func.sum(
            case((and_(Activity.date >= two_weeks_ago, Activity.date < week_ago), Activity.emissions), else_=0.0)
        ), 0.0)
        stmt = (
            select(User, this_week.label("this_week"), last_week.label("last_week"))
            .join(Activity, Activity.user_id == User.id)
            .group_by(User.id)
        )
        return (await self.session.execute(stmt)).all()

    async def streak_leaders(self, limit: int) -> Sequence[User]:
        result = await self.session.execute(
            select(User).where(User.streak > 0).order_by(desc(User.streak), desc(User.xp), User.id).limit(limit)
        )
        return result.scalars().all()

    # ── Calculator profile ───────────────────────────────────────────────────

    async def get_calculator_profile(self, user_id: int) -> CalculatorProfile | None:
        result = await self.session.execute(
            select(CalculatorProfile).where(CalculatorProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    # ── Goals ────────────────────────────────────────────────────────────────

    async def get_active_goal_rows(self, user_id: int) -> Sequence[Goal]:
        result = await self.session.execute(
            select(Goal)
            .where(Goal.user_id == user_id, Goal.status == "active")
            .order_by(Goal.created_at)
        )
        return result.scalars().all()

    async def get_active_goals(self, user_id: int) -> list[dict[str, Any]]:
        """Active goals in the shape the AI prompt builder consumes."""
        return [
            {
                "type": g.type,
                "title": g.title,
                "target_value": g.target_value,
                "current_value": g.current_value,
            }
            for g in await self.get_active_goal_rows(user_id)
        ]

    # ── Dismissals ───────────────────────────────────────────────────────────

    async def get_dismissed_insight_ids(self, user_id: int, now: datetime | None = None) -> set[str]:
        """Ids of insights dismissed by the user whose dismissal has not expired."""
        now = now or utcnow()
        result = await self.session.execute(
            select(Insight.insight_type, Insight.expires_at).where(
                Insight.user_id == user_id,
                Insight.is_dismissed.is_(True),
                Insight.insight_type != AI_CACHE_TYPE,
            )
        )
        dismissed: set[str] = set()
        for insight_id, expires_at in result.all():
            if expires_at is None or as_utc(expires_at) > now:
                dismissed.add(insight_id)
        return dismissed

    async def dismiss_insight(
        self,
        user_id: int,
        insight_id: str,
        *,
        category: str = "general",
        title: str = "",
        days: int = 30,
    ) -> datetime:
        """Record (or refresh) a dismissal marker and return its expiry."""
        expires_at = utcnow() + timedelta(days=days)
        await self.session.execute(
            delete(Insight).where(Insight.user_id == user_id, Insight.insight_type == insight_id)
        )
        self.session.add(Insight(
            user_id=user_id,
            insight_type=insight_id,
            category=category,
            title=title or insight_id,
            is_dismissed=True,
            expires_at=expires_at,
        ))
        await self.session.flush()
        logger.info("🙈 Insight {} dismissed for user {} until {}", insight_id, user_id, expires_at.date())
        return expires_at

