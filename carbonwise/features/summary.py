"""
CarbonWise – Summary Generation
================================
Turns the feature vector and the rule engine's picks into the headline
narrative, and derives the breakdown statistics shown next to it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from carbonwise.features.emission_calculator import CANONICAL_CATEGORIES
from carbonwise.features.extractor import ActivityLike, FeatureVector
from carbonwise.features.recommendation_engine import Insight
from carbonwise.features.trend_detector import weekly_totals

ONBOARDING_SUMMARY = (
    "Welcome to CarbonWise! Start logging your daily activities to get personalized insights "
    "about your carbon footprint. We'll analyze your transport, energy, diet, and waste patterns "
    "to help you make eco-friendly choices."
)


@dataclass
class TopCategory:
    name:       str
    emissions:  float
    percentage: int


@dataclass
class Summary:
    summary:           str
    top_category:      TopCategory | None
    potential_savings: float
    insight_count:     int

    def to_dict(self) -> dict:
        return asdict(self)


def _percentage(part: float, total: float) -> int:
    return int(part / total * 100 + 0.5) if total > 0 else 0


def generate_summary(features: FeatureVector, insights: list[Insight]) -> Summary:
    """
    Compose the top-line narrative.

    Numeric content is fixed (category, kg, share, savings); only the
    wording around it is templated.
    """
    if not features.has_any_data:
        return Summary(summary=ONBOARDING_SUMMARY, top_category=None, potential_savings=0.0, insight_count=0)

    categories = [
        (cat, features.emissions_for(cat))
        for cat in CANONICAL_CATEGORIES
        if features.has_data_for(cat)
    ]
    if not categories:
        # only unrecognised categories were logged
        return Summary(
            summary=(
                "You've started tracking! Keep logging activities to build a complete picture "
                "of your carbon footprint."
            ),
            top_category=None,
            potential_savings=0.0,
            insight_count=len(insights),
        )

    name, emissions = max(categories, key=lambda c: c[1])
    total = sum(e for _, e in categories)
    share = _percentage(emissions, total)
    potential = sum(i.potential_savings for i in insights)

    text = (
        f"Based on {features.activity_count} logged activities, your highest emission source is "
        f"**{name}** at {emissions:.1f} kg CO₂ ({share}% of tracked emissions). "
    )
    if insights and potential > 0:
        text += f"By following our recommendations, you could save up to {potential:.0f} kg CO₂ per month."
    else:
        text += "Keep tracking to unlock personalized reduction tips!"

    return Summary(
        summary=text,
        top_category=TopCategory(name=name, emissions=round(emissions, 1), percentage=share),
        potential_savings=round(potential, 1),
        insight_count=len(insights),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Derived statistics
# ─────────────────────────────────────────────────────────────────────────────

def category_breakdown(features: FeatureVector) -> list[dict[str, Any]]:
    """Emissions per category with data, share of the total, largest first."""
    rows = [
        (cat, features.emissions_for(cat))
        for cat in CANONICAL_CATEGORIES
        if features.has_data_for(cat)
    ]
    total = sum(e for _, e in rows)
    rows.sort(key=lambda r: r[1], reverse=True)
    return [
        {"category": cat, "emissions": round(e, 1), "percentage": _percentage(e, total)}
        for cat, e in rows
    ]


def build_statistics(
    features: FeatureVector,
    activities: Iterable[ActivityLike],
    today: date | None = None,
) -> dict[str, Any]:
    """Breakdown, weekly comparison, and best/worst category for the insights page."""
    today = today or date.today()
    breakdown = category_breakdown(features)
    this_week, last_week = weekly_totals(
        [a for a in activities if a.date >= today - timedelta(days=14)], today
    )
    this_total = sum(this_week.values())
    last_total = sum(last_week.values())
    change = round((this_total - last_total) / last_total * 100, 1) if last_total > 0 else 0.0

    return {
        "total_emissions": round(features.total_emissions, 1),
        "activity_count": features.activity_count,
        "category_breakdown": breakdown,
        "weekly_comparison": {
            "this_week": round(this_total, 1),
            "last_week": round(last_total, 1),
            "change_percent": change,
            "trend": "down" if change <= 0 else "up",
        },
        "worst_category": breakdown[0]["category"] if breakdown else None,
        "best_category": breakdown[-1]["category"] if breakdown else None,
    }
