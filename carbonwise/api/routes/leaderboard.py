"""
leaderboard.py — Leaderboard API Routes
========================================
Endpoints (the X-User-Id header is optional; when present the caller is flagged):
    GET /api/v1/leaderboard           → users by XP with badge count and reduction vs the global average
    GET /api/v1/leaderboard/weekly    → users ranked by week-over-week improvement
    GET /api/v1/leaderboard/streaks   → users with an active streak, longest first
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from carbonwise.api.deps import get_optional_user, get_repository
from carbonwise.api.schemas.leaderboard import (
    LeaderboardEntry,
    LeaderboardResponse,
    StreakEntry,
    StreakLeaderboardResponse,
    UserRank,
    WeeklyEntry,
    WeeklyLeaderboardResponse,
)
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import User
from carbonwise.features.stats import improvement_percent, reduction_percent

router = APIRouter()


def _is_current(user: Optional[User], user_id: int) -> bool:
    return user is not None and user.id == user_id


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    repository: ActivityRepository = Depends(get_repository),
):
    rows = await repository.xp_leaderboard(limit)
    entries = [
        LeaderboardEntry(
            rank=rank,
            id=row.User.id,
            username=row.User.username,
            xp=row.User.xp,
            level=row.User.level,
            streak=row.User.streak,
            badge_count=row.badge_count,
            reduction_percent=reduction_percent(row.total_emissions, row.days_tracked),
            is_current_user=_is_current(user, row.User.id),
        )
        for rank, row in enumerate(rows, start=1)
    ]

    user_rank = None
    if user is not None:
        mine = (await repository.xp_leaderboard(user_id=user.id))[0]
        user_rank = UserRank(
            rank=await repository.xp_rank(user.xp),
            username=user.username,
            xp=user.xp,
            level=user.level,
            streak=user.streak,
            badge_count=mine.badge_count,
            reduction_percent=reduction_percent(mine.total_emissions, mine.days_tracked),
        )

    return LeaderboardResponse(
        leaderboard=entries,
        user_rank=user_rank,
        total_users=await repository.count_users(),
    )


@router.get("/weekly", response_model=WeeklyLeaderboardResponse)
async def get_weekly_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    repository: ActivityRepository = Depends(get_repository),
):
    today = date.today()
    rows = await repository.weekly_emissions_by_user(today)

    def improvement(row) -> float:
        return (row.last_week - row.this_week) / row.last_week if row.last_week > 0 else 0.0

    ranked = sorted(rows, key=lambda r: (-improvement(r), -r.User.xp, r.User.id))[:limit]
    return WeeklyLeaderboardResponse(
        leaderboard=[
            WeeklyEntry(
                rank=rank,
                id=row.User.id,
                username=row.User.username,
                xp=row.User.xp,
                level=row.User.level,
                this_week_emissions=round(row.this_week, 1),
                improvement_percent=improvement_percent(row.this_week, row.last_week),
                is_current_user=_is_current(user, row.User.id),
            )
            for rank, row in enumerate(ranked, start=1)
        ],
        start_date=today - timedelta(days=7),
    )


@router.get("/streaks", response_model=StreakLeaderboardResponse)
async def get_streak_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    repository: ActivityRepository = Depends(get_repository),
):
    leaders = await repository.streak_leaders(limit)
    return StreakLeaderboardResponse(
        leaderboard=[
            StreakEntry(
                rank=rank,
                id=u.id,
                username=u.username,
                streak=u.streak,
                xp=u.xp,
                level=u.level,
                is_current_user=_is_current(user, u.id),
            )
            for rank, u in enumerate(leaders, start=1)
        ],
    )
