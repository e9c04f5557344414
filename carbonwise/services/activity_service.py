"""
CarbonWise – Activity Service
==============================
Write side of the activity log.  Logging an activity:

  1. resolves the subtype (explicit or keyword-classified)
  2. freezes emissions with the calculator
  3. advances the user's streak and awards activity XP
  4. awards any newly earned badges
  5. moves active goals forward, completing those that reach their target
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger
from sqlalchemy import select

from carbonwise.core.exceptions import NotFoundError
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import Activity, Goal, User, UserBadge
from carbonwise.features.emission_calculator import (
    ActivityType,
    classify_activity_type,
    compute_emissions,
    normalize_category,
)
from carbonwise.features.gamification import (
    ACTIVITY_XP,
    ECO_TRIP_KEYWORDS,
    VEGGIE_KEYWORDS,
    Badge,
    BadgeStats,
    calculate_level,
    goal_progress_increment,
    level_title,
    newly_earned_badges,
    next_streak,
)


@dataclass
class XPAward:
    xp_awarded:     int
    previous_xp:    int
    new_xp:         int
    previous_level: int
    new_level:      int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level

    @property
    def level_title(self) -> str:
        return level_title(self.new_level)


@dataclass
class ActivityLogResult:
    activity:        Activity
    activity_type:   str
    xp_earned:       int
    streak:          int
    new_badges:      list[Badge] = field(default_factory=list)
    completed_goals: list[Goal] = field(default_factory=list)


def _subtype_name(subtype: ActivityType | str) -> str:
    return subtype.value if isinstance(subtype, ActivityType) else subtype


# ─────────────────────────────────────────────────────────────────────────────
# XP, badges, goals
# ─────────────────────────────────────────────────────────────────────────────

def award_xp(user: User, amount: int) -> XPAward:
    """Add XP to ``user`` in place and recompute the level."""
    previous_xp, previous_level = user.xp or 0, user.level or 1
    user.xp = previous_xp + amount
    user.level = calculate_level(user.xp)
    award = XPAward(amount, previous_xp, user.xp, previous_level, user.level)
    if award.leveled_up:
        logger.info("🎉 User {} reached level {} ({})", user.id, award.new_level, award.level_title)
    return award


async def badge_stats(repository: ActivityRepository, user: User) -> BadgeStats:
    return BadgeStats(
        activity_count=await repository.count_activities(user.id),
        distinct_days=await repository.count_distinct_days(user.id),
        eco_trips=await repository.count_keyword_activities(user.id, "transport", ECO_TRIP_KEYWORDS),
        veggie_days=await repository.count_keyword_activities(
            user.id, "diet", VEGGIE_KEYWORDS, distinct_days=True
        ),
        streak=user.streak or 0,
        level=user.level or 1,
        total_emissions=await repository.total_emissions(user.id),
    )


async def earned_badge_keys(repository: ActivityRepository, user_id: int) -> set[str]:
    result = await repository.session.execute(
        select(UserBadge.badge_key).where(UserBadge.user_id == user_id)
    )
    return set(result.scalars().all())


async def check_badges(repository: ActivityRepository, user: User) -> list[Badge]:
    """Award every badge whose condition now holds and that the user lacks."""
    earned = await earned_badge_keys(repository, user.id)
    new_badges = newly_earned_badges(await badge_stats(repository, user), earned)
    for badge in new_badges:
        repository.session.add(UserBadge(user_id=user.id, badge_key=badge.key))
        award_xp(user, badge.xp_reward)
        logger.info("🏅 User {} earned badge '{}'", user.id, badge.name)
    if new_badges:
        await repository.session.flush()
    return new_badges


def complete_goal_if_reached(user: User, goal: Goal) -> bool:
    if goal.status == "active" and goal.current_value >= goal.target_value:
        goal.status = "completed"
        award_xp(user, goal.xp_reward or 100)
        logger.info("🎯 User {} completed goal '{}'", user.id, goal.title)
        return True
    return False


async def update_goal_progress(
    repository: ActivityRepository,
    user: User,
    category: str,
    activity_type: str,
    value: float,
    emissions: float,
) -> list[Goal]:
    """Advance the user's active goals for one logged activity; returns goals completed by it."""
    completed: list[Goal] = []
    for goal in await repository.get_active_goal_rows(user.id):
        increment = goal_progress_increment(
            goal.type,
            goal.current_value,
            normalize_category(category),
            activity_type,
            value,
            emissions,
            user.streak or 0,
        )
        if increment <= 0:
            continue
        goal.current_value += increment
        if complete_goal_if_reached(user, goal):
            completed.append(goal)
    return completed


# ─────────────────────────────────────────────────────────────────────────────
# Activity CRUD
# ─────────────────────────────────────────────────────────────────────────────

async def _resolve_fuel(repository: ActivityRepository, user_id: int, fuel_type: str | None) -> str | None:
    if fuel_type:
        return fuel_type
    profile = await repository.get_calculator_profile(user_id)
    return profile.fuel_type if profile is not None else None


async def log_activity(
    repository: ActivityRepository,
    user: User,
    *,
    category: str,
    value: float,
    description: str | None = None,
    unit: str | None = None,
    on_date: date | None = None,
    sub_type: str | None = None,
    fuel_type: str | None = None,
    today: date | None = None,
) -> ActivityLogResult:
    today = today or date.today()
    category = category.strip().lower()
    description = description or "Unknown activity"
    subtype = sub_type or classify_activity_type(category, description)
    fuel = await _resolve_fuel(repository, user.id, fuel_type)
    emissions = compute_emissions(category, subtype, value, fuel)

    activity = Activity(
        user_id=user.id,
        category=category,
        description=description,
        value=value,
        unit=unit or "kg",
        emissions=emissions,
        date=on_date or today,
    )
    repository.session.add(activity)

    if user.last_activity_date != today:
        user.streak = next_streak(user.last_activity_date, user.streak or 0, today)
        user.last_activity_date = today

    award_xp(user, ACTIVITY_XP)
    await repository.session.flush()

    new_badges = await check_badges(repository, user)
    activity_type = _subtype_name(subtype)
    completed = await update_goal_progress(repository, user, category, activity_type, value, emissions)
    await repository.session.flush()

    logger.info(
        "📝 Activity logged | user={} | {} '{}' {} {} → {:.2f} kg CO2",
        user.id, category, activity_type, value, activity.unit, emissions,
    )
    return ActivityLogResult(
        activity=activity,
        activity_type=activity_type,
        xp_earned=ACTIVITY_XP,
        streak=user.streak,
        new_badges=new_badges,
        completed_goals=completed,
    )


async def update_activity(
    repository: ActivityRepository,
    user_id: int,
    activity_id: int,
    changes: dict[str, Any],
) -> Activity:
    """
    Apply a partial update.  Emissions are recomputed when category, value
    or subtype change; otherwise the frozen figure is kept.
    """
    activity = await repository.get_activity(user_id, activity_id)
    if activity is None:
        raise NotFoundError("Activity", activity_id)

    sub_type = changes.pop("sub_type", None)
    fuel_type = changes.pop("fuel_type", None)
    recompute = sub_type is not None or "value" in changes or "category" in changes

    for name in ("category", "description", "value", "unit", "date"):
        if name in changes and changes[name] is not None:
            setattr(activity, name, changes[name].strip().lower() if name == "category" else changes[name])

    if recompute:
        subtype = sub_type or classify_activity_type(activity.category, activity.description)
        fuel = await _resolve_fuel(repository, user_id, fuel_type)
        activity.emissions = compute_emissions(activity.category, subtype, activity.value, fuel)

    await repository.session.flush()
    return activity


async def delete_activity(repository: ActivityRepository, user_id: int, activity_id: int) -> None:
    activity = await repository.get_activity(user_id, activity_id)
    if activity is None:
        raise NotFoundError("Activity", activity_id)
    await repository.session.delete(activity)
    await repository.session.flush()
