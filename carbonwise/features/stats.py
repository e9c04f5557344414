"""
CarbonWise – Dashboard Statistics & Comparisons
================================================
Pure arithmetic behind the stats and leaderboard endpoints: period
comparisons, annual projection, chart timelines, regional benchmarks and
the carbon saved by low-carbon trips.

  today       = [today]                       vs yesterday
  this week   = [today - 7d, today]           vs [today - 14d, today - 7d)
  this month  = [today - 1 month, today]      vs [today - 2 months, today - 1 month)
"""

from __future__ import annotations

import calendar
import math
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Iterable, Literal

from carbonwise.features.emission_calculator import normalize_category
from carbonwise.features.extractor import ActivityLike
from carbonwise.features.gamification import ECO_TRIP_KEYWORDS, GLOBAL_ANNUAL_AVERAGE_KG

if TYPE_CHECKING:
    from carbonwise.database.repository import ActivityRepository

# kg CO2e per person per year
REGIONAL_AVERAGES_KG = {
    "north-america": 15000,
    "europe":        7000,
    "asia":          4500,
    "africa":        1000,
    "south-america": 2500,
    "oceania":       12000,
    "default":       5500,
}
TARGET_2030_KG = 2000

# kg saved per km travelled by bike, on foot, by bus or by train instead of by car
CARBON_SAVED_PER_KM = 0.15

ChartRange = Literal["week", "month", "year"]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def months_ago(day: date, months: int) -> date:
    """Same day of the month ``months`` earlier, clamped to the month's length."""
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def annual_projection(total_emissions: float, distinct_days: int) -> float:
    """Daily average over tracked days, scaled to a year (kg)."""
    if distinct_days <= 0:
        return 0.0
    return total_emissions / distinct_days * 365


def percent_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def period_comparison(current: float, previous: float) -> dict[str, Any]:
    change = percent_change(current, previous)
    return {
        "emissions": round(current, 1),
        "change": change,
        "trend": "down" if change <= 0 else "up",
    }


def _sum_between(activities: Iterable[ActivityLike], start: date, end: date) -> float:
    """Emissions dated in [start, end]."""
    return sum(a.emissions or 0.0 for a in activities if start <= a.date <= end)


def dashboard_periods(activities: Iterable[ActivityLike], today: date) -> dict[str, dict[str, Any]]:
    """Today, this week and this month, each against the period before it."""
    activities = list(activities)
    day = timedelta(days=1)
    week_ago = today - timedelta(days=7)
    month_ago = months_ago(today, 1)

    return {
        "today": period_comparison(
            _sum_between(activities, today, today),
            _sum_between(activities, today - day, today - day),
        ),
        "week": period_comparison(
            _sum_between(activities, week_ago, today),
            _sum_between(activities, today - timedelta(days=14), week_ago - day),
        ),
        "month": period_comparison(
            _sum_between(activities, month_ago, today),
            _sum_between(activities, months_ago(today, 2), month_ago - day),
        ),
    }


def global_comparison(annual_kg: float) -> dict[str, Any]:
    """Percent above (positive) or below (negative) the global average."""
    percent = round_half_up((annual_kg - GLOBAL_ANNUAL_AVERAGE_KG) / GLOBAL_ANNUAL_AVERAGE_KG * 100)
    return {"global_percent": percent, "is_below": percent < 0}


# ─────────────────────────────────────────────────────────────────────────────
# Charts
# ─────────────────────────────────────────────────────────────────────────────

def chart_start(chart_range: ChartRange, today: date) -> date:
    if chart_range == "year":
        return months_ago(today.replace(day=1), 11)
    days = 30 if chart_range == "month" else 7
    return today - timedelta(days=days - 1)


def timeline(activities: Iterable[ActivityLike], chart_range: ChartRange, today: date) -> dict[str, list]:
    """
    Emissions per day (week, month) or per calendar month (year).

    Every bucket in the range is present; gaps read as 0.
    """
    start = chart_start(chart_range, today)
    labels: list[str] = []
    data: list[float] = []

    if chart_range == "year":
        totals: dict[tuple[int, int], float] = {}
        for a in activities:
            if start <= a.date <= today:
                key = (a.date.year, a.date.month)
                totals[key] = totals.get(key, 0.0) + (a.emissions or 0.0)
        for offset in range(11, -1, -1):
            month = months_ago(today.replace(day=1), offset)
            labels.append(month.strftime("%b"))
            data.append(round(totals.get((month.year, month.month), 0.0), 1))
        return {"labels": labels, "data": data}

    daily: dict[date, float] = {}
    for a in activities:
        if start <= a.date <= today:
            daily[a.date] = daily.get(a.date, 0.0) + (a.emissions or 0.0)
    day = start
    while day <= today:
        labels.append(day.strftime("%a") if chart_range == "week" else str(day.day))
        data.append(round(daily.get(day, 0.0), 1))
        day += timedelta(days=1)
    return {"labels": labels, "data": data}


def category_totals(activities: Iterable[ActivityLike]) -> list[dict[str, Any]]:
    """Emissions per (canonical) category with its share of the total, largest first."""
    totals: dict[str, float] = {}
    for a in activities:
        cat = normalize_category(a.category)
        totals[cat] = totals.get(cat, 0.0) + (a.emissions or 0.0)
    grand_total = sum(totals.values())
    rows = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {
            "category": cat,
            "total": round(total, 1),
            "percentage": round_half_up(total / grand_total * 100) if grand_total > 0 else 0,
        }
        for cat, total in rows
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Benchmarks
# ─────────────────────────────────────────────────────────────────────────────

def _benchmark(annual_kg: float, decimals: int) -> dict[str, Any]:
    return {
        "annual_tons": round(annual_kg / 1000, decimals),
        "percentage": round_half_up(annual_kg / GLOBAL_ANNUAL_AVERAGE_KG * 100),
    }


def regional_comparison(annual_kg: float, region: str | None = None) -> dict[str, Any]:
    """The user's projection next to the regional, global and 2030 target figures."""
    key = (region or "default").strip().lower()
    regional = REGIONAL_AVERAGES_KG.get(key, REGIONAL_AVERAGES_KG["default"])
    return {
        "region": key if key in REGIONAL_AVERAGES_KG else "default",
        "user": _benchmark(annual_kg, 2),
        "regional": _benchmark(regional, 1),
        "global_average": _benchmark(GLOBAL_ANNUAL_AVERAGE_KG, 1),
        "target": _benchmark(TARGET_2030_KG, 1),
    }


def reduction_percent(total_emissions: float, distinct_days: int) -> int:
    """How far below the global average the user's projection sits, clamped to ±100."""
    annual = annual_projection(total_emissions, distinct_days)
    if annual <= 0:
        return 0
    percent = round_half_up((GLOBAL_ANNUAL_AVERAGE_KG - annual) / GLOBAL_ANNUAL_AVERAGE_KG * 100)
    return max(-100, min(100, percent))


def improvement_percent(this_week: float, last_week: float) -> int:
    if last_week <= 0:
        return 0
    return round_half_up((last_week - this_week) / last_week * 100)


def carbon_saved(activities: Iterable[ActivityLike]) -> float:
    """kg avoided by transport logged as a bike, walk, bus or train trip."""
    saved = 0.0
    for a in activities:
        if normalize_category(a.category) != "transport":
            continue
        desc = (a.description or "").lower()
        if any(kw in desc for kw in ECO_TRIP_KEYWORDS):
            saved += (a.value or 0.0) * CARBON_SAVED_PER_KM
    return saved


# ─────────────────────────────────────────────────────────────────────────────
# Repository-backed loaders
# ─────────────────────────────────────────────────────────────────────────────

async def load_annual_projection(repository: ActivityRepository, user_id: int) -> float:
    return annual_projection(
        await repository.total_emissions(user_id),
        await repository.count_distinct_days(user_id),
    )


async def load_dashboard(repository: ActivityRepository, user_id: int, today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    activities = await repository.get_activities(user_id, since=months_ago(today, 2), until=today)
    annual = await load_annual_projection(repository, user_id)
    return {
        **dashboard_periods(activities, today),
        "annual": {"projection": round(annual / 1000, 2), "unit": "tons"},
        "comparison": global_comparison(annual),
    }


async def load_charts(
    repository: ActivityRepository,
    user_id: int,
    chart_range: ChartRange = "week",
    today: date | None = None,
) -> dict[str, Any]:
    today = today or date.today()
    activities = await repository.get_activities(user_id, since=chart_start(chart_range, today), until=today)
    return {
        "range": chart_range,
        "timeline": timeline(activities, chart_range, today),
        "categories": category_totals(activities),
    }
