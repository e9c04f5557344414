"""
CarbonWise – Week-over-Week Trend Detection
============================================
Compares each canonical category's emissions this week against the week
before and reports the swings worth mentioning.

  this week  = [today - 7d, today]
  last week  = [today - 14d, today - 7d)
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable

from loguru import logger

from carbonwise.features.emission_calculator import CANONICAL_CATEGORIES, normalize_category
from carbonwise.features.extractor import ActivityLike

if TYPE_CHECKING:
    from carbonwise.database.repository import ActivityRepository

# ─────────────────────────────────────────────────────────────────────────────
# Thresholds (percent)
# ─────────────────────────────────────────────────────────────────────────────
REPORT_THRESHOLD = 5       # |change| below this is noise
SIGNIFICANT_THRESHOLD = 10  # |change| at or above this is a real trend


@dataclass
class TrendRecord:
    category:       str
    change_percent: int
    trend:          str       # positive | negative | neutral
    message:        str
    this_week:      float
    last_week:      float

    def to_dict(self) -> dict:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify_change(change_percent: int) -> str | None:
    """Map a percent change to a trend tag, or None when it is too small to report."""
    if abs(change_percent) < REPORT_THRESHOLD:
        return None
    if change_percent <= -SIGNIFICANT_THRESHOLD:
        return "positive"
    if change_percent >= SIGNIFICANT_THRESHOLD:
        return "negative"
    return "neutral"


def _trend_message(category: str, change_percent: int, trend: str) -> str:
    if trend == "positive":
        return f"Great job! Your {category} emissions are down {abs(change_percent)}% this week."
    if trend == "negative":
        return (
            f"Your {category} emissions increased {change_percent}% this week. "
            "Consider reviewing your habits."
        )
    return f"Your {category} emissions are relatively stable."


def weekly_totals(activities: Iterable[ActivityLike], today: date) -> tuple[dict[str, float], dict[str, float]]:
    """Sum emissions per canonical category for (this week, last week)."""
    week_ago = today - timedelta(days=7)
    two_weeks_ago = today - timedelta(days=14)

    this_week = {cat: 0.0 for cat in CANONICAL_CATEGORIES}
    last_week = {cat: 0.0 for cat in CANONICAL_CATEGORIES}

    for activity in activities:
        cat = normalize_category(activity.category)
        if cat not in this_week:
            continue
        if week_ago <= activity.date <= today:
            this_week[cat] += activity.emissions or 0.0
        elif two_weeks_ago <= activity.date < week_ago:
            last_week[cat] += activity.emissions or 0.0

    return this_week, last_week


def identify_trends(activities: Iterable[ActivityLike], today: date | None = None) -> list[TrendRecord]:
    """
    Detect week-over-week changes per category.

    Categories without a last-week baseline are skipped entirely.
    Output is sorted by absolute percent change, largest first.
    """
    today = today or date.today()
    this_week, last_week = weekly_totals(activities, today)

    trends: list[TrendRecord] = []
    for category in CANONICAL_CATEGORIES:
        previous = last_week[category]
        if previous <= 0:
            continue

        current = this_week[category]
        change_percent = _round_half_up((current - previous) / previous * 100)
        trend = classify_change(change_percent)
        if trend is None:
            continue

        trends.append(TrendRecord(
            category=category,
            change_percent=change_percent,
            trend=trend,
            message=_trend_message(category, change_percent, trend),
            this_week=round(current, 1),
            last_week=round(previous, 1),
        ))

    trends.sort(key=lambda t: abs(t.change_percent), reverse=True)
    logger.debug("📈 {} trend(s) detected for week ending {}", len(trends), today)
    return trends


async def load_trends(repository: ActivityRepository, user_id: int, today: date | None = None) -> list[TrendRecord]:
    """Fetch the last two weeks of activities and detect trends."""
    today = today or date.today()
    activities = await repository.get_activities(user_id, since=today - timedelta(days=14))
    return identify_trends(activities, today)


def encouragement_for(trends: list[TrendRecord]) -> str:
    """Pick a motivational line based on how the week went."""
    positive = [t for t in trends if t.trend == "positive"]

    if len(positive) >= 2:
        return (
            "Amazing progress! You're making real changes across multiple categories. "
            "Keep up the fantastic work! 🌱"
        )
    if len(positive) == 1:
        return (
            f"Great job reducing your {positive[0].category} emissions! "
            "Small steps lead to big changes. Keep it up! 💪"
        )
    if any(t.trend == "neutral" for t in trends):
        return "You're maintaining steady habits. Ready to take the next step? Try one small change this week! 🌿"
    return "Every journey starts somewhere. Pick one area to focus on this week, and you'll see progress! 🌍"
