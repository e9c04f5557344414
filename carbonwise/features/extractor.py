"""
CarbonWise – Activity Feature Extraction
=========================================
Reduces a user's recent activity log plus their calculator profile into a
flat ``FeatureVector`` — the single input shared by the recommendation
rules, the summary generator and the AI prompt builder.

The vector is rebuilt on every request and never persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Iterable, Protocol

from loguru import logger

from carbonwise.features.emission_calculator import CANONICAL_CATEGORIES, normalize_category

if TYPE_CHECKING:
    from carbonwise.database.repository import ActivityRepository

WINDOW_DAYS = 30

# ─────────────────────────────────────────────────────────────────────────────
# Description keyword sets
# ─────────────────────────────────────────────────────────────────────────────
# Plain substring matching: "I biked to avoid my car" counts as a car trip.

CAR_KEYWORDS = ("car", "drove")
TRANSIT_KEYWORDS = ("bus", "train", "metro")
FLIGHT_KEYWORDS = ("flight", "plane")
SHORT_TRIP_KM = 5


class ActivityLike(Protocol):
    category: str
    description: str
    value: float
    emissions: float
    date: date


# Neutral answers used when a user never filled in the calculator
PROFILE_DEFAULTS: dict[str, Any] = {
    "energy_source":   "mixed",
    "diet_type":       "average",
    "local_food":      False,
    "low_food_waste":  False,
    "compost":         False,
    "recycle_paper":   False,
    "recycle_plastic": False,
    "recycle_glass":   False,
    "recycle_metal":   False,
    "single_use":      "medium",
}


# ─────────────────────────────────────────────────────────────────────────────
# Feature vector
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class FeatureVector:
    activity_count:        int = 0
    categories_with_data:  list[str] = field(default_factory=list)
    total_emissions:       float = 0.0

    # transport
    car_trips:             int = 0
    public_transit_trips:  int = 0
    short_car_trips:       int = 0
    solo_car_trips:        int = 0
    car_emissions:         float = 0.0
    flight_emissions:      float = 0.0
    transport_emissions:   float = 0.0
    has_transport_data:    bool = False

    # electricity
    electricity_emissions: float = 0.0
    electricity_usage:     float = 0.0          # kWh
    energy_source:         str = "mixed"
    has_electricity_data:  bool = False

    # heating
    heating_emissions:     float = 0.0
    has_heating_data:      bool = False

    # diet
    diet_emissions:        float = 0.0
    diet_type:             str = "average"
    local_food:            bool = False
    low_food_waste:        bool = False
    has_diet_data:         bool = False

    # waste
    waste_emissions:       float = 0.0
    composts:              bool = False
    recycling_score:       int = 0              # 0-4 materials recycled
    single_use_level:      str = "medium"
    has_waste_data:        bool = False

    @property
    def has_any_data(self) -> bool:
        return self.activity_count > 0

    def emissions_for(self, category: str) -> float:
        cat = normalize_category(category)
        if cat not in CANONICAL_CATEGORIES:
            return 0.0
        return float(getattr(self, f"{cat}_emissions"))

    def has_data_for(self, category: str) -> bool:
        cat = normalize_category(category)
        if cat not in CANONICAL_CATEGORIES:
            return False
        return bool(getattr(self, f"has_{cat}_data"))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["has_any_data"] = self.has_any_data
        return data


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _mentions(activity: ActivityLike, keywords: Iterable[str]) -> bool:
    desc = (activity.description or "").lower()
    return any(kw in desc for kw in keywords)


def _profile_value(profile: Any, name: str) -> Any:
    """Read a profile attribute, falling back to the neutral default when absent or NULL."""
    value = getattr(profile, name, None) if profile is not None else None
    return PROFILE_DEFAULTS[name] if value is None else value


def _sum_emissions(activities: Iterable[ActivityLike]) -> float:
    return float(sum(a.emissions or 0.0 for a in activities))


# ─────────────────────────────────────────────────────────────────────────────
# Main feature builder
# ─────────────────────────────────────────────────────────────────────────────

def extract_features(
    activities: Iterable[ActivityLike],
    profile: Any = None,
    as_of: date | None = None,
    window_days: int = WINDOW_DAYS,
) -> FeatureVector:
    """
    Build the feature vector for one user.

    Args:
        activities:  The user's activity records (any iterable; older rows are filtered out).
        profile:     CalculatorProfile row, or None for neutral defaults.
        as_of:       Reference day (defaults to today).
        window_days: Trailing window length; activities dated ≥ as_of - window_days count.

    Returns:
        FeatureVector.  Never raises for an empty history.
    """
    as_of = as_of or date.today()
    since = as_of - timedelta(days=window_days)
    recent = [a for a in activities if a.date >= since]

    by_category: dict[str, list[ActivityLike]] = {cat: [] for cat in CANONICAL_CATEGORIES}
    categories_with_data: list[str] = []
    for activity in recent:
        cat = normalize_category(activity.category)
        by_category.setdefault(cat, []).append(activity)
        if cat not in categories_with_data:
            categories_with_data.append(cat)

    transport = by_category["transport"]
    car = [a for a in transport if _mentions(a, CAR_KEYWORDS)]
    electricity = by_category["electricity"]
    heating = by_category["heating"]
    diet = by_category["diet"]
    waste = by_category["waste"]

    recycling_score = sum(
        1
        for material in ("recycle_paper", "recycle_plastic", "recycle_glass", "recycle_metal")
        if _profile_value(profile, material)
    )

    features = FeatureVector(
        activity_count=len(recent),
        categories_with_data=categories_with_data,
        total_emissions=_sum_emissions(recent),
        # transport
        car_trips=len(car),
        public_transit_trips=sum(1 for a in transport if _mentions(a, TRANSIT_KEYWORDS)),
        short_car_trips=sum(1 for a in car if a.value < SHORT_TRIP_KM),
        solo_car_trips=len(car),  # no passenger data, every car trip counts as solo
        car_emissions=_sum_emissions(car),
        flight_emissions=_sum_emissions(a for a in transport if _mentions(a, FLIGHT_KEYWORDS)),
        transport_emissions=_sum_emissions(transport),
        has_transport_data=bool(transport),
        # electricity
        electricity_emissions=_sum_emissions(electricity),
        electricity_usage=float(sum(a.value or 0.0 for a in electricity)),
        energy_source=_profile_value(profile, "energy_source"),
        has_electricity_data=bool(electricity),
        # heating
        heating_emissions=_sum_emissions(heating),
        has_heating_data=bool(heating),
        # diet
        diet_emissions=_sum_emissions(diet),
        diet_type=_profile_value(profile, "diet_type"),
        local_food=bool(_profile_value(profile, "local_food")),
        low_food_waste=bool(_profile_value(profile, "low_food_waste")),
        has_diet_data=bool(diet),
        # waste
        waste_emissions=_sum_emissions(waste),
        composts=bool(_profile_value(profile, "compost")),
        recycling_score=recycling_score,
        single_use_level=_profile_value(profile, "single_use"),
        has_waste_data=bool(waste),
    )

    logger.debug(
        "🔬 Features built | activities={} | categories={} | total={:.1f} kg",
        features.activity_count,
        features.categories_with_data,
        features.total_emissions,
    )
    return features


async def load_features(
    repository: ActivityRepository,
    user_id: int,
    as_of: date | None = None,
    window_days: int = WINDOW_DAYS,
) -> FeatureVector:
    """Fetch the user's window of activities and profile, then build the vector."""
    as_of = as_of or date.today()
    activities = await repository.get_activities(user_id, since=as_of - timedelta(days=window_days))
    profile = await repository.get_calculator_profile(user_id)
    return extract_features(activities, profile, as_of=as_of, window_days=window_days)
