"""
Unit tests for the activity feature extractor.
"""

from types import SimpleNamespace

import pytest

from carbonwise.features.extractor import FeatureVector, extract_features


def test_empty_history_never_raises(today):
    features = extract_features([], None, as_of=today)
    assert features.activity_count == 0
    assert not features.has_any_data
    assert features.total_emissions == 0.0
    assert features.categories_with_data == []
    assert not any([
        features.has_transport_data,
        features.has_electricity_data,
        features.has_heating_data,
        features.has_diet_data,
        features.has_waste_data,
    ])


def test_energy_and_electricity_are_the_same_category(make_activity, today):
    as_energy = extract_features([make_activity("energy", "grid power", 120, 60.0)], as_of=today)
    as_electricity = extract_features([make_activity("electricity", "grid power", 120, 60.0)], as_of=today)

    assert as_energy == as_electricity
    assert as_energy.electricity_emissions == 60.0
    assert as_energy.electricity_usage == 120
    assert as_energy.categories_with_data == ["electricity"]


def test_food_counts_as_diet(make_activity, today):
    features = extract_features([make_activity("food", "salad", 1, 3.8)], as_of=today)
    assert features.has_diet_data
    assert features.diet_emissions == 3.8


def test_window_is_inclusive_at_thirty_days(make_activity, today):
    activities = [
        make_activity("waste", "bag", 1, 0.5, days_ago=30),
        make_activity("waste", "bag", 1, 0.5, days_ago=31),
    ]
    features = extract_features(activities, as_of=today)
    assert features.activity_count == 1
    assert features.waste_emissions == 0.5


def test_transport_keyword_counts(make_activity, today):
    activities = [
        make_activity("transport", "Drove to work", 12, 2.52),
        make_activity("transport", "car to gym", 3, 0.63),
        make_activity("transport", "bus downtown", 8, 0.71),
        make_activity("transport", "Flight to Berlin", 600, 153.0),
    ]
    features = extract_features(activities, as_of=today)

    assert features.car_trips == 2
    assert features.solo_car_trips == 2
    assert features.short_car_trips == 1
    assert features.public_transit_trips == 1
    assert features.car_emissions == pytest.approx(3.15)
    assert features.flight_emissions == 153.0
    assert features.transport_emissions == pytest.approx(156.86)


def test_keyword_ambiguity_is_preserved(make_activity, today):
    """Known limitation: a mention of "car" counts as a car trip even when negated."""
    features = extract_features([make_activity("transport", "I biked to avoid my car", 4, 0.0)], as_of=today)
    assert features.car_trips == 1
    assert features.short_car_trips == 1


def test_profile_defaults_when_absent(today):
    features = extract_features([], None, as_of=today)
    assert features.energy_source == "mixed"
    assert features.diet_type == "average"
    assert features.local_food is False
    assert features.composts is False
    assert features.recycling_score == 0
    assert features.single_use_level == "medium"


def test_profile_fields_are_copied(today):
    profile = SimpleNamespace(
        energy_source="renewable",
        diet_type="vegan",
        local_food=True,
        low_food_waste=True,
        compost=True,
        recycle_paper=True,
        recycle_plastic=True,
        recycle_glass=False,
        recycle_metal=None,
        single_use="low",
    )
    features = extract_features([], profile, as_of=today)
    assert features.energy_source == "renewable"
    assert features.diet_type == "vegan"
    assert features.composts is True
    assert features.recycling_score == 2
    assert features.single_use_level == "low"


def test_unknown_category_counts_towards_totals_only(make_activity, today):
    features = extract_features([make_activity("shopping", "shoes", 1, 0.5)], as_of=today)
    assert features.has_any_data
    assert features.total_emissions == 0.5
    assert features.categories_with_data == ["shopping"]
    assert features.emissions_for("shopping") == 0.0


def test_feature_vector_to_dict():
    data = FeatureVector(activity_count=2).to_dict()
    assert data["activity_count"] == 2
    assert data["has_any_data"] is True


@pytest.mark.parametrize("name", ["total", "car", "flight", "any", "electricity_usage"])
def test_non_category_names_do_not_leak_other_fields(name):
    features = FeatureVector(
        activity_count=3, total_emissions=99.0, car_emissions=42.0, flight_emissions=7.0, electricity_usage=50.0,
    )
    assert features.emissions_for(name) == 0.0
    assert features.has_data_for(name) is False
