"""
Unit tests for dashboard statistics, chart timelines and benchmarks.
"""

from datetime import date
from types import SimpleNamespace

import pytest

from carbonwise.features.stats import (
    annual_projection,
    carbon_saved,
    category_totals,
    dashboard_periods,
    global_comparison,
    improvement_percent,
    months_ago,
    period_comparison,
    reduction_percent,
    regional_comparison,
    timeline,
)


@pytest.mark.parametrize(
    "day, months, expected",
    [
        (date(2024, 3, 31), 1, date(2024, 2, 29)),
        (date(2024, 1, 15), 1, date(2023, 12, 15)),
        (date(2024, 6, 15), 12, date(2023, 6, 15)),
    ],
)
def test_months_ago_clamps_to_month_length(day, months, expected):
    assert months_ago(day, months) == expected


def test_annual_projection():
    assert annual_projection(70.0, 7) == pytest.approx(3650.0)
    assert annual_projection(50.0, 0) == 0.0


def test_dashboard_periods(make_activity, today):
    activities = [
        make_activity("transport", "car", 1, 10.0, days_ago=0),
        make_activity("transport", "car", 1, 20.0, days_ago=1),
        make_activity("diet", "burger", 1, 5.0, days_ago=7),
        make_activity("diet", "burger", 1, 35.0, days_ago=8),
        make_activity("heating", "gas", 1, 35.0, days_ago=14),
        make_activity("waste", "bags", 1, 15.0, days_ago=20),
        make_activity("electricity", "grid", 1, 60.0, days_ago=40),
    ]
    periods = dashboard_periods(activities, today)

    assert periods["today"] == {"emissions": 10.0, "change": -50.0, "trend": "down"}
    assert periods["week"] == {"emissions": 35.0, "change": -50.0, "trend": "down"}
    assert periods["month"] == {"emissions": 120.0, "change": 100.0, "trend": "up"}


def test_no_previous_period_reads_as_flat():
    assert period_comparison(5.0, 0.0) == {"emissions": 5.0, "change": 0.0, "trend": "down"}


def test_global_comparison():
    assert global_comparison(2400.0) == {"global_percent": -50, "is_below": True}
    assert global_comparison(4800.0) == {"global_percent": 0, "is_below": False}


def test_week_timeline_fills_gaps(make_activity, today):
    activities = [
        make_activity("transport", "car", 1, 10.0, days_ago=0),
        make_activity("transport", "car", 1, 2.0, days_ago=6),
        make_activity("transport", "car", 1, 1.0, days_ago=6),
        make_activity("transport", "car", 1, 99.0, days_ago=7),
    ]
    chart = timeline(activities, "week", today)

    assert chart["labels"] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    assert chart["data"] == [3.0, 0.0, 0.0, 0.0, 0.0, 0.0, 10.0]


def test_month_timeline_labels_days(today):
    chart = timeline([], "month", today)
    assert len(chart["data"]) == 30
    assert chart["labels"][0] == "17"
    assert chart["labels"][-1] == "15"


def test_year_timeline_buckets_by_month(today):
    activities = [
        SimpleNamespace(category="transport", description="car", value=1, emissions=4.0, date=date(2023, 7, 2)),
        SimpleNamespace(category="transport", description="car", value=1, emissions=9.0, date=date(2023, 6, 20)),
        SimpleNamespace(category="diet", description="burger", value=1, emissions=1.5, date=date(2024, 6, 1)),
        SimpleNamespace(category="diet", description="burger", value=1, emissions=1.0, date=date(2024, 6, 14)),
    ]
    chart = timeline(activities, "year", today)

    assert chart["labels"][0] == "Jul"
    assert chart["labels"][-1] == "Jun"
    assert chart["data"][0] == 4.0
    assert chart["data"][-1] == 2.5
    assert sum(chart["data"]) == 6.5


def test_category_totals_fold_synonyms(make_activity):
    activities = [
        make_activity("energy", "grid", 1, 10.0),
        make_activity("electricity", "grid", 1, 20.0),
        make_activity("transport", "car", 1, 10.0),
    ]
    assert category_totals(activities) == [
        {"category": "electricity", "total": 30.0, "percentage": 75},
        {"category": "transport", "total": 10.0, "percentage": 25},
    ]
    assert category_totals([]) == []


def test_regional_comparison():
    data = regional_comparison(2400.0, "Europe")
    assert data["region"] == "europe"
    assert data["user"] == {"annual_tons": 2.4, "percentage": 50}
    assert data["regional"] == {"annual_tons": 7.0, "percentage": 146}
    assert data["global_average"] == {"annual_tons": 4.8, "percentage": 100}
    assert data["target"] == {"annual_tons": 2.0, "percentage": 42}


def test_unknown_region_uses_default():
    data = regional_comparison(0.0, "mars")
    assert data["region"] == "default"
    assert data["regional"] == {"annual_tons": 5.5, "percentage": 115}


@pytest.mark.parametrize(
    "total, days, expected",
    [
        (70.0, 7, 24),      # 3650 kg/year
        (0.0, 0, 0),        # nothing tracked
        (100.0, 1, -100),   # 36500 kg/year, clamped
    ],
)
def test_reduction_percent(total, days, expected):
    assert reduction_percent(total, days) == expected


def test_improvement_percent():
    assert improvement_percent(5.0, 10.0) == 50
    assert improvement_percent(12.0, 10.0) == -20
    assert improvement_percent(10.0, 0.0) == 0


def test_carbon_saved_counts_low_carbon_trips_only(make_activity):
    activities = [
        make_activity("transport", "Bike to work", 10, 0.0),
        make_activity("transport", "bus into town", 4, 0.4),
        make_activity("transport", "Drive to work", 20, 4.2),
        make_activity("diet", "walked to the market", 1, 2.9),
    ]
    assert carbon_saved(activities) == pytest.approx(2.1)
