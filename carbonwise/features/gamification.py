"""
CarbonWise – Gamification Rules
================================
XP levels, logging streaks, badge conditions and goal-progress increments.
Everything here is pure; ``services.activity_service`` applies the results
to the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

# ─────────────────────────────────────────────────────────────────────────────
# 1. Levels
# ─────────────────────────────────────────────────────────────────────────────

LEVEL_THRESHOLDS: tuple[int, ...] = (
    0, 200, 500, 1000, 1800, 2800, 4000, 5500, 7500, 10000, 13000, 16500, 20500, 25000, 30000,
)

LEVEL_TITLES: tuple[str, ...] = (
    "Seedling", "Sprout", "Green Thumb", "Eco Enthusiast", "Eco Warrior",
    "Carbon Cutter", "Earth Defender", "Climate Champion", "Sustainability Star", "Eco Legend",
    "Planet Protector", "Green Guardian", "Earth Ambassador", "Climate Hero", "Eco Master",
)

ACTIVITY_XP = 10
GOAL_CREATED_XP = 15


def calculate_level(xp: int) -> int:
    for index in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        if xp >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def level_title(level: int) -> str:
    return LEVEL_TITLES[level - 1] if 1 <= level <= len(LEVEL_TITLES) else LEVEL_TITLES[-1]


def level_progress(xp: int, level: int) -> dict:
    """XP position inside the current level, for progress bars."""
    current = LEVEL_THRESHOLDS[level - 1] if 1 <= level <= len(LEVEL_THRESHOLDS) else 0
    nxt = LEVEL_THRESHOLDS[level] if level < len(LEVEL_THRESHOLDS) else LEVEL_THRESHOLDS[-1]
    in_level = xp - current
    needed = nxt - current
    progress = min(100, round(in_level / needed * 100)) if needed > 0 else 100
    return {
        "current_xp": xp,
        "level": level,
        "level_title": level_title(level),
        "xp_in_level": in_level,
        "xp_to_next": max(0, needed - in_level),
        "xp_needed": needed,
        "progress": progress,
    }


# ─────────────────────────────────────────────────────────────────────────────
# 2. Streaks
# ─────────────────────────────────────────────────────────────────────────────

def next_streak(last_activity: date | None, streak: int, today: date) -> int:
    """Streak after logging on ``today``: +1 for consecutive days, reset to 1 after a gap."""
    if last_activity is None:
        return 1
    gap = (today - last_activity).days
    if gap <= 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1


# ─────────────────────────────────────────────────────────────────────────────
# 3. Badges
# ─────────────────────────────────────────────────────────────────────────────

GLOBAL_ANNUAL_AVERAGE_KG = 4800


@dataclass(frozen=True)
class BadgeStats:
    activity_count:  int
    distinct_days:   int
    eco_trips:       int
    veggie_days:     int
    streak:          int
    level:           int
    total_emissions: float

    @property
    def annual_projection(self) -> float:
        if self.distinct_days <= 0:
            return 0.0
        return self.total_emissions / self.distinct_days * 365


@dataclass(frozen=True)
class Badge:
    key:         str
    name:        str
    description: str
    icon:        str
    xp_reward:   int
    earned_when: Callable[[BadgeStats], bool]


BADGES: tuple[Badge, ...] = (
    Badge("first-steps", "First Steps", "Log your first activity", "fa-seedling", 25,
          lambda s: s.activity_count >= 1),
    Badge("week-warrior", "Week Warrior", "7-day logging streak", "fa-fire", 100,
          lambda s: s.streak >= 7),
    Badge("green-commuter", "Green Commuter", "10 eco-friendly trips logged", "fa-bicycle", 75,
          lambda s: s.eco_trips >= 10),
    Badge("veggie-lover", "Veggie Lover", "5 meat-free days", "fa-leaf", 50,
          lambda s: s.veggie_days >= 5),
    Badge("planet-protector", "Planet Protector", "Below global average emissions", "fa-globe", 150,
          lambda s: s.distinct_days >= 7 and s.annual_projection < GLOBAL_ANNUAL_AVERAGE_KG),
    Badge("eco-legend", "Eco Legend", "Reach Level 10", "fa-crown", 300,
          lambda s: s.level >= 10),
    Badge("month-master", "Month Master", "30-day logging streak", "fa-calendar-check", 250,
          lambda s: s.streak >= 30),
    Badge("consistent-tracker", "Consistent Tracker", "Log activities for 100 days", "fa-chart-line", 500,
          lambda s: s.distinct_days >= 100),
)

ECO_TRIP_KEYWORDS = ("bike", "walk", "bus", "train")
VEGGIE_KEYWORDS = ("vegetarian", "vegan", "plant")


def newly_earned_badges(stats: BadgeStats, earned: set[str]) -> list[Badge]:
    return [b for b in BADGES if b.key not in earned and b.earned_when(stats)]


# ─────────────────────────────────────────────────────────────────────────────
# 4. Goal progress
# ─────────────────────────────────────────────────────────────────────────────

# Average person's daily emissions per category (kg CO2e)
DAILY_BASELINES = {
    "transport":   4.6,
    "electricity": 4.5,
    "heating":     3.0,
    "diet":        5.5,
    "waste":       1.5,
}

# calculator entry → (goal type it feeds, baseline category)
CALCULATOR_GOALS = {
    "driving":         ("reduce-transport", "transport"),
    "electricity":     ("reduce-energy", "electricity"),
    "heating":         ("reduce-energy", "heating"),
    "daily_diet":      ("diet-change", "diet"),
    "household_waste": ("zero-waste", "waste"),
}

ECO_TRANSPORT = frozenset({"bike", "walk", "bus", "train", "metro", "carpool"})
LOW_CARBON_POWER = frozenset({"renewable", "nuclear", "solar", "wind"})
DIET_CHANGE_SAVINGS = {"vegan": 4.3, "vegetarian": 3.4, "low-meat": 3.0}

CAR_KM_FACTOR = 0.21
GRID_KWH_SAVED = 0.45
WASTE_BAG_FACTOR = 0.5


def goal_progress_increment(
    goal_type: str,
    goal_current_value: float,
    category: str,
    activity_type: str,
    value: float,
    emissions: float,
    streak: int,
) -> float:
    """
    How far one logged activity moves a goal of ``goal_type``.

    ``category`` must already be normalised; ``activity_type`` is the
    resolved subtype string.
    """
    if activity_type in CALCULATOR_GOALS:
        mapped_goal, baseline_category = CALCULATOR_GOALS[activity_type]
        if goal_type != mapped_goal:
            return 0.0
        reduction = DAILY_BASELINES.get(baseline_category, 5.0) - emissions
        return reduction if reduction > 0 else 0.0

    if goal_type == "reduce-transport" and category == "transport" and activity_type in ECO_TRANSPORT:
        return value * CAR_KM_FACTOR
    if goal_type == "reduce-energy" and category == "electricity" and activity_type in LOW_CARBON_POWER:
        return value * GRID_KWH_SAVED
    if goal_type == "diet-change" and category == "diet":
        return DIET_CHANGE_SAVINGS.get(activity_type, 0.0)
    if goal_type == "zero-waste" and category == "waste":
        return value * WASTE_BAG_FACTOR
    if goal_type == "streak":
        return max(0.0, streak - goal_current_value)
    return 0.0


def goal_xp_reward(duration_days: int) -> int:
    if duration_days >= 60:
        return 250
    if duration_days >= 30:
        return 150
    return 100
