"""
CarbonWise – Emission Calculator
=================================
Converts a logged quantity into kg CO₂-equivalent using static factor tables.

The tables are module constants loaded once at import and never mutated.
Lookups always test key *existence*: walking and cycling carry a real
factor of 0 and must not be mistaken for a missing subtype.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

# ─────────────────────────────────────────────────────────────────────────────
# 1. Emission factor tables (kg CO2e per unit)
# ─────────────────────────────────────────────────────────────────────────────

CAR_FACTORS: Mapping[str, float] = MappingProxyType({
    "petrol":   0.21,
    "diesel":   0.18,
    "hybrid":   0.12,
    "electric": 0.05,
})

TRANSPORT_FACTORS: Mapping[str, float] = MappingProxyType({
    "bus":     0.089,
    "train":   0.041,
    "plane":   0.255,
    "bike":    0.0,
    "walk":    0.0,
    "metro":   0.035,
    "carpool": 0.07,
})

ELECTRICITY_FACTORS: Mapping[str, float] = MappingProxyType({
    "mixed":       0.5,
    "coal":        0.9,
    "natural-gas": 0.4,
    "nuclear":     0.02,
    "renewable":   0.05,
})

HEATING_FACTORS: Mapping[str, float] = MappingProxyType({
    "natural-gas": 2.0,
    "oil":         2.5,
    "electric":    1.5,
    "wood":        0.3,
    "heat-pump":   0.5,
})

DIET_FACTORS: Mapping[str, float] = MappingProxyType({     # per day
    "meat-heavy": 7.2,
    "average":    5.6,
    "low-meat":   4.2,
    "vegetarian": 3.8,
    "vegan":      2.9,
})

WASTE_PER_BAG = 0.5

# Defaults used when the subtype is absent from its table
DEFAULT_FUEL = "petrol"
DEFAULT_TRANSPORT_FACTOR = CAR_FACTORS[DEFAULT_FUEL]
DEFAULT_ELECTRICITY_FACTOR = ELECTRICITY_FACTORS["mixed"]
DEFAULT_HEATING_FACTOR = HEATING_FACTORS["natural-gas"]
DEFAULT_DIET_FACTOR = 1.8
DEFAULT_FACTOR = 0.5


# ─────────────────────────────────────────────────────────────────────────────
# 2. Category normalisation
# ─────────────────────────────────────────────────────────────────────────────

CANONICAL_CATEGORIES: tuple[str, ...] = ("transport", "electricity", "heating", "diet", "waste")

_CATEGORY_SYNONYMS = {
    "energy": "electricity",
    "food":   "diet",
}


def normalize_category(category: str) -> str:
    """Fold synonym categories onto their canonical name (``energy`` → ``electricity``)."""
    lower = (category or "").strip().lower()
    return _CATEGORY_SYNONYMS.get(lower, lower)


def category_aliases(category: str) -> tuple[str, ...]:
    """Every stored spelling of ``category``, canonical name first."""
    canonical = normalize_category(category)
    return (canonical, *(alias for alias, target in _CATEGORY_SYNONYMS.items() if target == canonical))


# ─────────────────────────────────────────────────────────────────────────────
# 3. Activity-type inference from free text
# ─────────────────────────────────────────────────────────────────────────────

class ActivityType(str, Enum):
    """Subtypes the keyword classifier can recognise."""

    BIKE = "bike"
    WALK = "walk"
    BUS = "bus"
    TRAIN = "train"
    METRO = "metro"
    CARPOOL = "carpool"
    CAR = "car"
    VEGAN = "vegan"
    VEGETARIAN = "vegetarian"
    LOW_MEAT = "low-meat"
    SOLAR = "solar"
    WIND = "wind"
    RENEWABLE = "renewable"
    NUCLEAR = "nuclear"
    # calculator entries, matched on the exact description
    DRIVING = "driving"
    ELECTRICITY = "electricity"
    HEATING = "heating"
    DAILY_DIET = "daily_diet"
    HOUSEHOLD_WASTE = "household_waste"


CALCULATOR_TYPES = frozenset({
    ActivityType.DRIVING,
    ActivityType.ELECTRICITY,
    ActivityType.HEATING,
    ActivityType.DAILY_DIET,
    ActivityType.HOUSEHOLD_WASTE,
})

# Ordered: the first matching row wins, so "carpool" must precede "car".
ACTIVITY_KEYWORDS: Mapping[str, tuple[tuple[ActivityType, tuple[str, ...]], ...]] = MappingProxyType({
    "transport": (
        (ActivityType.BIKE,    ("bike", "cycling", "biking")),
        (ActivityType.WALK,    ("walk", "walking")),
        (ActivityType.BUS,     ("bus",)),
        (ActivityType.TRAIN,   ("train", "rail")),
        (ActivityType.METRO,   ("metro", "subway", "underground")),
        (ActivityType.CARPOOL, ("carpool", "shared ride", "ride share")),
        (ActivityType.CAR,     ("car", "drive", "driving")),
    ),
    "diet": (
        (ActivityType.VEGAN,      ("vegan",)),
        (ActivityType.VEGETARIAN, ("vegetarian", "veggie")),
        (ActivityType.LOW_MEAT,   ("low meat", "low-meat", "less meat")),
    ),
    "electricity": (
        (ActivityType.SOLAR,     ("solar",)),
        (ActivityType.WIND,      ("wind",)),
        (ActivityType.RENEWABLE, ("renewable", "green energy")),
        (ActivityType.NUCLEAR,   ("nuclear",)),
    ),
})


def classify_activity_type(category: str, description: str | None) -> ActivityType | str:
    """
    Infer an activity subtype from a free-text description.

    Returns an ``ActivityType`` when a keyword matches, otherwise the raw
    description unchanged.  An unrecognised return value simply makes the
    calculator fall back to the category default factor.
    """
    desc = (description or "").lower()

    try:
        calculator_type = ActivityType(desc)
    except ValueError:
        calculator_type = None
    if calculator_type in CALCULATOR_TYPES:
        return calculator_type

    for activity_type, keywords in ACTIVITY_KEYWORDS.get(normalize_category(category), ()):
        if any(kw in desc for kw in keywords):
            return activity_type

    return description or ""


# ─────────────────────────────────────────────────────────────────────────────
# 4. Emission computation
# ─────────────────────────────────────────────────────────────────────────────

def _subtype_key(subtype: ActivityType | str | None) -> str:
    if isinstance(subtype, ActivityType):
        return subtype.value
    return (subtype or "").strip().lower()


def emission_factor(category: str, subtype: ActivityType | str | None, fuel_type: str | None = None) -> float:
    """Return the kg CO2e-per-unit factor for (category, subtype)."""
    key = _subtype_key(subtype)
    cat = normalize_category(category)

    if cat == "transport":
        if key == ActivityType.CAR.value:
            fuel = (fuel_type or "").lower()
            return CAR_FACTORS[fuel] if fuel in CAR_FACTORS else CAR_FACTORS[DEFAULT_FUEL]
        if key in TRANSPORT_FACTORS:
            return TRANSPORT_FACTORS[key]
        return DEFAULT_TRANSPORT_FACTOR

    if cat == "electricity":
        return ELECTRICITY_FACTORS[key] if key in ELECTRICITY_FACTORS else DEFAULT_ELECTRICITY_FACTOR

    if cat == "heating":
        return HEATING_FACTORS[key] if key in HEATING_FACTORS else DEFAULT_HEATING_FACTOR

    if cat == "diet":
        return DIET_FACTORS[key] if key in DIET_FACTORS else DEFAULT_DIET_FACTOR

    if cat == "waste":
        return WASTE_PER_BAG

    return DEFAULT_FACTOR


def compute_emissions(
    category: str,
    subtype: ActivityType | str | None,
    value: float,
    fuel_type: str | None = None,
) -> float:
    """
    Estimate kg CO2e for one activity.

    Args:
        category:  Activity category (synonyms accepted).
        subtype:   Resolved subtype, e.g. ``"car"``, ``"vegan"``, ``"renewable"``.
        value:     Quantity in the category unit (km, kWh, days, bags…).
        fuel_type: Only consulted for cars.

    Returns:
        Emissions in kg CO2e.  Pure and deterministic.
    """
    return float(value) * emission_factor(category, subtype, fuel_type)


def factor_tables() -> dict:
    """Plain-dict view of every factor table, for the public /factors endpoint."""
    return {
        "electricity": dict(ELECTRICITY_FACTORS),
        "transport": {"car": dict(CAR_FACTORS), **TRANSPORT_FACTORS},
        "heating": dict(HEATING_FACTORS),
        "diet": dict(DIET_FACTORS),
        "waste": {"perBag": WASTE_PER_BAG},
    }
