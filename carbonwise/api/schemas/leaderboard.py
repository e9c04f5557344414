from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    id: int
    username: str
    xp: int
    level: int
    streak: int
    badge_count: int
    reduction_percent: int
    is_current_user: bool = False


class UserRank(BaseModel):
    rank: int
    username: str
    xp: int
    level: int
    streak: int
    badge_count: int
    reduction_percent: int


class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]
    user_rank: Optional[UserRank] = None
    total_users: int


class WeeklyEntry(BaseModel):
    rank: int
    id: int
    username: str
    xp: int
    level: int
    this_week_emissions: float
    improvement_percent: int
    is_current_user: bool = False


class WeeklyLeaderboardResponse(BaseModel):
    leaderboard: List[WeeklyEntry]
    period: str = "weekly"
    start_date: date


class StreakEntry(BaseModel):
    rank: int
    id: int
    username: str
    streak: int
    xp: int
    level: int
    is_current_user: bool = False


class StreakLeaderboardResponse(BaseModel):
    leaderboard: List[StreakEntry]
