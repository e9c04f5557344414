"""
CarbonWise – Rule-Based Recommendation Engine
==============================================
Evaluates a static table of condition → recommendation rules against a
user's ``FeatureVector``.

Selection:
  * only categories the user has logged data for are evaluated
  * within a category the first rule whose condition holds AND whose
    savings estimate is > 0 wins; the rest of that category is skipped
  * a rule that raises is skipped, never the whole pass
  * results are ordered by priority, then savings (both descending)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from loguru import logger

from carbonwise.features.extractor import FeatureVector

Predicate = Callable[[FeatureVector], bool]
Estimator = Callable[[FeatureVector], float]


# ─────────────────────────────────────────────────────────────────────────────
# Data Structures
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RecommendationRule:
    id:          str
    category:    str
    title:       str
    description: str
    condition:   Predicate
    savings:     Estimator
    priority:    int


@dataclass
class Insight:
    id:                str
    title:             str
    description:       str
    category:          str
    potential_savings: float      # kg CO2e per month
    priority:          int

    def to_dict(self) -> dict:
        return asdict(self)


# ─────────────────────────────────────────────────────────────────────────────
# 1. Predicates
# ─────────────────────────────────────────────────────────────────────────────

def drives_without_transit(f: FeatureVector) -> bool:
    return f.car_trips > 5 and f.public_transit_trips < 2


def has_short_car_trips(f: FeatureVector) -> bool:
    return f.short_car_trips > 3


def drives_solo_often(f: FeatureVector) -> bool:
    return f.solo_car_trips > 8


def flies_heavily(f: FeatureVector) -> bool:
    return f.flight_emissions > 100


def non_renewable_high_usage(f: FeatureVector) -> bool:
    return f.energy_source != "renewable" and f.electricity_emissions > 20


def uses_over_300_kwh(f: FeatureVector) -> bool:
    return f.electricity_usage > 300


def uses_over_250_kwh(f: FeatureVector) -> bool:
    return f.electricity_usage > 250


def heats_heavily(f: FeatureVector) -> bool:
    return f.heating_emissions > 30


def eats_meat_regularly(f: FeatureVector) -> bool:
    return f.diet_type in ("meat-heavy", "average")


def buys_non_local(f: FeatureVector) -> bool:
    return not f.local_food


def wastes_food(f: FeatureVector) -> bool:
    return not f.low_food_waste


def not_plant_based(f: FeatureVector) -> bool:
    return f.diet_type not in ("vegetarian", "vegan")


def skips_compost(f: FeatureVector) -> bool:
    return not f.composts and f.waste_emissions > 5


def recycles_partially(f: FeatureVector) -> bool:
    return f.recycling_score < 4


def uses_single_use_items(f: FeatureVector) -> bool:
    return f.single_use_level in ("high", "medium")


# ─────────────────────────────────────────────────────────────────────────────
# 2. Savings estimators (kg CO2e per month)
# ─────────────────────────────────────────────────────────────────────────────
# Diet and waste estimators assume a typical figure when nothing is logged yet.

def transit_savings(f: FeatureVector) -> float:
    return f.car_emissions * 0.4


def cycling_savings(f: FeatureVector) -> float:
    return f.short_car_trips * 2.5


def carpool_savings(f: FeatureVector) -> float:
    return f.car_emissions * 0.3


def flight_savings(f: FeatureVector) -> float:
    return f.flight_emissions * 0.5


def renewable_savings(f: FeatureVector) -> float:
    return f.electricity_emissions * 0.85


def standby_savings(f: FeatureVector) -> float:
    return f.electricity_emissions * 0.1


def led_savings(f: FeatureVector) -> float:
    return f.electricity_emissions * 0.05


def thermostat_savings(f: FeatureVector) -> float:
    return f.heating_emissions * 0.12


def meatless_savings(f: FeatureVector) -> float:
    return (f.diet_emissions or 40) * 0.15


def local_food_savings(f: FeatureVector) -> float:
    return (f.diet_emissions or 30) * 0.12


def food_waste_savings(f: FeatureVector) -> float:
    return (f.diet_emissions or 30) * 0.2


def plant_protein_savings(f: FeatureVector) -> float:
    return (f.diet_emissions or 35) * 0.2


def compost_savings(f: FeatureVector) -> float:
    return (f.waste_emissions or 10) * 0.3


def recycling_savings(f: FeatureVector) -> float:
    return (f.waste_emissions or 8) * 0.1


def single_use_savings(f: FeatureVector) -> float:
    return (f.waste_emissions or 8) * 0.15


# ─────────────────────────────────────────────────────────────────────────────
# 3. Rule table (declared order matters within a category)
# ─────────────────────────────────────────────────────────────────────────────

RULES: Mapping[str, tuple[RecommendationRule, ...]] = MappingProxyType({
    "transport": (
        RecommendationRule(
            id="switch-to-public-transit",
            category="transport",
            title="Switch to Public Transit",
            description=(
                "Your car usage accounts for a significant portion of emissions. Using public "
                "transit just 2 days a week could reduce your transport footprint by 40%."
            ),
            condition=drives_without_transit,
            savings=transit_savings,
            priority=9,
        ),
        RecommendationRule(
            id="try-cycling",
            category="transport",
            title="Try Active Commuting",
            description=(
                "Short trips under 5km are perfect for cycling. You could save emissions and "
                "improve your health!"
            ),
            condition=has_short_car_trips,
            savings=cycling_savings,
            priority=8,
        ),
        RecommendationRule(
            id="carpooling",
            category="transport",
            title="Consider Carpooling",
            description="Sharing rides with colleagues or neighbors could cut your transport emissions in half.",
            condition=drives_solo_often,
            savings=carpool_savings,
            priority=7,
        ),
        RecommendationRule(
            id="reduce-flights",
            category="transport",
            title="Reduce Air Travel",
            description=(
                "A single flight can emit more CO2 than months of driving. Consider video calls "
                "for business or trains for shorter trips."
            ),
            condition=flies_heavily,
            savings=flight_savings,
            priority=10,
        ),
    ),
    "electricity": (
        RecommendationRule(
            id="switch-renewable",
            category="electricity",
            title="Go Renewable Now",
            description="Switch to a green energy provider - cuts your electricity emissions by 85% instantly.",
            condition=non_renewable_high_usage,
            savings=renewable_savings,
            priority=9,
        ),
        RecommendationRule(
            id="reduce-standby",
            category="electricity",
            title="Kill Standby Power",
            description="Devices on standby eat 10% of your electricity. Use power strips to cut them dead.",
            condition=uses_over_300_kwh,
            savings=standby_savings,
            priority=6,
        ),
        RecommendationRule(
            id="led-lighting",
            category="electricity",
            title="Switch to LEDs",
            description="LED bulbs use 75% less power. Easy swap, big impact.",
            condition=uses_over_250_kwh,
            savings=led_savings,
            priority=5,
        ),
        RecommendationRule(
            id="smart-thermostat",
            category="electricity",
            title="Get a Smart Thermostat",
            description="Auto-adjust heating = 10-15% energy savings. Set it and forget it.",
            condition=heats_heavily,
            savings=thermostat_savings,
            priority=7,
        ),
    ),
    "diet": (
        RecommendationRule(
            id="meatless-days",
            category="diet",
            title="Try Meatless Days",
            description=(
                "Reducing meat consumption by just one day per week can significantly lower your "
                "dietary carbon footprint."
            ),
            condition=eats_meat_regularly,
            savings=meatless_savings,
            priority=8,
        ),
        RecommendationRule(
            id="local-seasonal",
            category="diet",
            title="Choose Local & Seasonal",
            description=(
                "Locally sourced, seasonal produce requires less transportation and storage, "
                "reducing emissions by 10-15%."
            ),
            condition=buys_non_local,
            savings=local_food_savings,
            priority=6,
        ),
        RecommendationRule(
            id="reduce-food-waste",
            category="diet",
            title="Reduce Food Waste",
            description=(
                "About 30% of food is wasted. Planning meals and using leftovers can cut diet "
                "emissions significantly."
            ),
            condition=wastes_food,
            savings=food_waste_savings,
            priority=7,
        ),
        RecommendationRule(
            id="plant-protein",
            category="diet",
            title="Explore Plant Proteins",
            description=(
                "Beans, lentils, and tofu have 10-50x lower emissions than beef. Try swapping "
                "just a few meals."
            ),
            condition=not_plant_based,
            savings=plant_protein_savings,
            priority=7,
        ),
    ),
    "waste": (
        RecommendationRule(
            id="start-composting",
            category="waste",
            title="Start Composting",
            description=(
                "Composting food waste prevents methane emissions from landfills and creates "
                "nutrient-rich soil."
            ),
            condition=skips_compost,
            savings=compost_savings,
            priority=7,
        ),
        RecommendationRule(
            id="improve-recycling",
            category="waste",
            title="Improve Recycling Habits",
            description=(
                "Recycling just one more material type (paper, plastic, glass, or metal) can "
                "reduce waste emissions by 10%."
            ),
            condition=recycles_partially,
            savings=recycling_savings,
            priority=6,
        ),
        RecommendationRule(
            id="reduce-single-use",
            category="waste",
            title="Reduce Single-Use Items",
            description=(
                "Switching to reusable bags, bottles, and containers can eliminate significant "
                "waste and emissions."
            ),
            condition=uses_single_use_items,
            savings=single_use_savings,
            priority=6,
        ),
    ),
})

ONBOARDING_INSIGHTS: tuple[Insight, ...] = (
    Insight(
        id="get-started-transport",
        title="Start Tracking Transport",
        description="Log your commute, car trips, and transit to see your transport emissions.",
        category="transport",
        potential_savings=0.0,
        priority=10,
    ),
    Insight(
        id="get-started-electricity",
        title="Track Your Electricity",
        description="Add your electricity usage to see how home energy impacts your footprint.",
        category="electricity",
        potential_savings=0.0,
        priority=9,
    ),
    Insight(
        id="get-started-diet",
        title="Log Your Meals",
        description="Track dietary choices to see how food impacts your carbon footprint.",
        category="diet",
        potential_savings=0.0,
        priority=8,
    ),
)


# ─────────────────────────────────────────────────────────────────────────────
# 4. Evaluation
# ─────────────────────────────────────────────────────────────────────────────

def category_eligible(category: str, features: FeatureVector) -> bool:
    """Only categories with logged data get recommendations; heating feeds the electricity rules."""
    if category == "electricity":
        return features.has_electricity_data or features.has_heating_data
    return features.has_data_for(category)


def evaluate_rule(rule: RecommendationRule, features: FeatureVector) -> Insight | None:
    """Return the rule's insight when it fires, None when it doesn't (or blows up)."""
    try:
        if not rule.condition(features):
            return None
        savings = float(rule.savings(features))
    except Exception as exc:
        logger.warning("Rule {} skipped: {}", rule.id, exc)
        return None

    if savings <= 0:
        return None
    return Insight(
        id=rule.id,
        title=rule.title,
        description=rule.description,
        category=rule.category,
        potential_savings=round(savings, 1),
        priority=rule.priority,
    )


def generate_insights(
    features: FeatureVector,
    rules: Mapping[str, tuple[RecommendationRule, ...]] = RULES,
) -> list[Insight]:
    """
    Produce at most one recommendation per category.

    A user with no activities gets the fixed onboarding prompts instead.
    """
    if not features.has_any_data:
        return [Insight(**asdict(i)) for i in ONBOARDING_INSIGHTS]

    insights: list[Insight] = []
    for category, category_rules in rules.items():
        if not category_eligible(category, features):
            continue
        for rule in category_rules:
            insight = evaluate_rule(rule, features)
            if insight is not None:
                insights.append(insight)
                break

    insights.sort(key=lambda i: (i.priority, i.potential_savings), reverse=True)
    logger.debug("💡 Rule engine selected {}", [i.id for i in insights])
    return insights
