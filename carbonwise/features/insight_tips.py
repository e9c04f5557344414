"""
Static follow-up material for the insight detail and category endpoints.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from carbonwise.features.emission_calculator import normalize_category

GENERIC_TIPS: tuple[str, ...] = ("Follow the recommendation to reduce your carbon footprint",)

INSIGHT_TIPS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "switch-to-public-transit": (
        "Plan your route using public transit apps",
        "Get a monthly pass for cost savings",
        "Use travel time productively - read or work",
        'Combine with cycling for the "last mile"',
    ),
    "try-cycling": (
        "Start with just one day per week",
        "Invest in a comfortable, reliable bike",
        "Use bike lanes and quiet streets",
        "Keep rain gear at work for bad weather",
    ),
    "switch-renewable": (
        "Compare green energy providers in your area",
        "Look for 100% renewable options",
        "Consider installing solar panels",
        "Many providers offer competitive rates",
    ),
    "meatless-days": (
        'Start with "Meatless Monday"',
        "Explore cuisines that are naturally vegetarian (Indian, Mediterranean)",
        "Learn to cook 3-4 delicious veggie meals",
        "Focus on what you're adding, not removing",
    ),
    "start-composting": (
        "Start with a simple countertop bin",
        "Compost fruit/veggie scraps, coffee grounds, eggshells",
        "Avoid meat, dairy, and oily foods",
        "Use the compost in your garden or donate it",
    ),
})

INSIGHT_RESOURCES: Mapping[str, tuple[dict[str, str], ...]] = MappingProxyType({
    "switch-to-public-transit": (
        {"title": "Local Transit Authority", "type": "link"},
        {"title": "Transit App Recommendations", "type": "article"},
    ),
    "switch-renewable": (
        {"title": "Green Energy Providers Comparison", "type": "tool"},
        {"title": "Solar Panel Calculator", "type": "tool"},
    ),
    "meatless-days": (
        {"title": "Easy Vegetarian Recipes", "type": "recipes"},
        {"title": "Plant-Based Protein Guide", "type": "guide"},
    ),
})

CATEGORY_TIPS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "transport": (
        "Walk or bike for trips under 2km",
        "Use public transit for longer commutes",
        "Carpool when driving is necessary",
        "Maintain your vehicle for efficiency",
        "Consider an electric or hybrid vehicle",
    ),
    "electricity": (
        "Switch to LED bulbs throughout your home",
        "Unplug devices when not in use",
        "Use smart power strips",
        "Set thermostats efficiently",
        "Consider renewable energy providers",
    ),
    "diet": (
        "Reduce red meat consumption",
        "Buy local and seasonal produce",
        "Plan meals to reduce food waste",
        "Grow some of your own herbs/vegetables",
        "Choose products with less packaging",
    ),
    "waste": (
        "Follow the 5 Rs: Refuse, Reduce, Reuse, Recycle, Rot",
        "Bring reusable bags, bottles, and containers",
        "Compost food scraps",
        "Repair before replacing",
        "Buy second-hand when possible",
    ),
})


def insight_tips(insight_id: str) -> list[str]:
    return list(INSIGHT_TIPS.get(insight_id, GENERIC_TIPS))


def insight_resources(insight_id: str) -> list[dict[str, str]]:
    return [dict(r) for r in INSIGHT_RESOURCES.get(insight_id, ())]


def category_tips(category: str) -> list[str]:
    return list(CATEGORY_TIPS.get(normalize_category(category), ()))
