"""
API tests for CarbonWise.

Run with: pytest carbonwise/tests/ -v
"""

from datetime import date, timedelta

import pytest

pytestmark = pytest.mark.asyncio


async def log(client, headers, **body):
    response = await client.post("/api/v1/activities", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def create_user(client, username):
    response = await client.post("/api/v1/users", json={"username": username, "email": f"{username}@example.com"})
    assert response.status_code == 201, response.text
    return {"X-User-Id": str(response.json()["id"])}


# ─────────────────────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────────────────────

async def test_health_liveness(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_health_ready(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["ready"] is True
    assert data["database"]["status"] == "ok"


async def test_health_deep_reports_ai_degraded(client):
    response = await client.get("/api/v1/health/deep")
    assert response.status_code == 200
    data = response.json()
    components = {c["name"]: c for c in data["components"]}
    assert components["ai_service"]["status"] == "degraded"
    assert components["database"]["status"] == "ok"
    assert data["overall"] == "degraded"


async def test_health_deep_survives_backend_error(client, fake_backend):
    async def unreachable():
        raise RuntimeError("connection reset")

    fake_backend.probe = unreachable
    response = await client.get("/api/v1/health/deep")
    assert response.status_code == 200
    components = {c["name"]: c for c in response.json()["components"]}
    assert components["ai_service"]["status"] == "degraded"


# ─────────────────────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────────────────────

async def test_create_user_and_me(client, auth_headers):
    response = await client.get("/api/v1/users/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "greta"
    assert data["xp"] == 0
    assert data["level"] == 1
    assert data["level_title"] == "Seedling"
    assert data["progress"]["xp_to_next"] == 200


async def test_duplicate_user_conflicts(client, auth_headers):
    response = await client.post("/api/v1/users", json={"username": "greta", "email": "other@example.com"})
    assert response.status_code == 409
    response = await client.post("/api/v1/users", json={"username": "other", "email": "GRETA@example.com"})
    assert response.status_code == 409


async def test_invalid_user_payload(client):
    response = await client.post("/api/v1/users", json={"username": "ab", "email": "not-an-email"})
    assert response.status_code == 422


async def test_missing_or_unknown_user_header(client):
    assert (await client.get("/api/v1/users/me")).status_code == 401
    assert (await client.get("/api/v1/users/me", headers={"X-User-Id": "9999"})).status_code == 404


async def test_profile_defaults_and_update(client, auth_headers):
    response = await client.get("/api/v1/users/me/profile", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["fuel_type"] == "petrol"

    response = await client.put(
        "/api/v1/users/me/profile", json={"fuel_type": "diesel", "compost": True}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["fuel_type"] == "diesel"
    assert response.json()["compost"] is True
    assert response.json()["diet_type"] == "average"


async def test_profile_fuel_type_feeds_car_emissions(client, auth_headers):
    await client.put("/api/v1/users/me/profile", json={"fuel_type": "electric"}, headers=auth_headers)
    data = await log(client, auth_headers, category="transport", description="Drive to the office", value=10)
    assert data["activity_type"] == "car"
    assert data["activity"]["emissions"] == pytest.approx(0.5)


# ─────────────────────────────────────────────────────────────────────────────
# Activities
# ─────────────────────────────────────────────────────────────────────────────

async def test_log_activities_emissions_xp_and_badge(client, auth_headers):
    first = await log(client, auth_headers, category="diet", description="Lunch", value=1, sub_type="low-meat")
    second = await log(client, auth_headers, category="diet", description="vegan dinner", value=1)

    assert first["activity"]["emissions"] == pytest.approx(4.2)
    assert second["activity"]["emissions"] == pytest.approx(2.9)
    assert second["activity_type"] == "vegan"
    assert [b["key"] for b in first["new_badges"]] == ["first-steps"]
    assert second["new_badges"] == []
    assert first["streak"] == second["streak"] == 1

    me = (await client.get("/api/v1/users/me", headers=auth_headers)).json()
    assert me["xp"] == 10 + 25 + 10

    listing = (await client.get("/api/v1/activities", headers=auth_headers)).json()
    assert listing["total"] == 2
    assert sum(a["emissions"] for a in listing["activities"]) == pytest.approx(7.1)

    badges = (await client.get("/api/v1/users/me/badges", headers=auth_headers)).json()
    assert badges["earned_count"] == 1
    assert [b["key"] for b in badges["badges"] if b["earned"]] == ["first-steps"]


async def test_bike_trip_emits_nothing(client, auth_headers):
    data = await log(client, auth_headers, category="transport", description="Bike to work", value=12)
    assert data["activity_type"] == "bike"
    assert data["activity"]["emissions"] == 0.0


async def test_petrol_car_trip_and_vegan_day_total(client, auth_headers):
    car = await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    vegan = await log(client, auth_headers, category="diet", description="vegan day", value=1)

    assert car["activity_type"] == "car"
    assert car["activity"]["emissions"] == pytest.approx(4.2)
    assert vegan["activity"]["emissions"] == pytest.approx(2.9)

    listing = (await client.get("/api/v1/activities", headers=auth_headers)).json()
    assert round(sum(a["emissions"] for a in listing["activities"]), 1) == 7.1


async def test_activity_requires_value(client, auth_headers):
    response = await client.post(
        "/api/v1/activities", json={"category": "transport", "description": "bus"}, headers=auth_headers
    )
    assert response.status_code == 422


async def test_activity_list_filters_by_category_alias(client, auth_headers):
    await log(client, auth_headers, category="energy", description="Home power", value=10)
    await log(client, auth_headers, category="transport", description="bus ride", value=5)

    response = await client.get("/api/v1/activities", params={"category": "electricity"}, headers=auth_headers)
    data = response.json()
    assert data["total"] == 1
    assert data["activities"][0]["category"] == "energy"


async def test_update_activity_recomputes_emissions(client, auth_headers):
    created = await log(client, auth_headers, category="diet", description="vegan lunch", value=1)
    activity_id = created["activity"]["id"]

    response = await client.put(f"/api/v1/activities/{activity_id}", json={"value": 2}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["emissions"] == pytest.approx(5.8)

    response = await client.put(
        f"/api/v1/activities/{activity_id}", json={"description": "vegan lunch, local"}, headers=auth_headers
    )
    assert response.json()["emissions"] == pytest.approx(5.8)


async def test_delete_activity(client, auth_headers):
    created = await log(client, auth_headers, category="waste", description="bags", value=2)
    activity_id = created["activity"]["id"]

    response = await client.delete(f"/api/v1/activities/{activity_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == activity_id

    response = await client.delete(f"/api/v1/activities/{activity_id}", headers=auth_headers)
    assert response.status_code == 404
    response = await client.put(f"/api/v1/activities/{activity_id}", json={"value": 1}, headers=auth_headers)
    assert response.status_code == 404


async def test_emission_factors_are_public(client):
    response = await client.get("/api/v1/activities/factors")
    assert response.status_code == 200
    factors = response.json()["factors"]
    assert factors["transport"]["car"]["petrol"] == 0.21
    assert factors["diet"]["vegan"] == 2.9


# ─────────────────────────────────────────────────────────────────────────────
# Goals
# ─────────────────────────────────────────────────────────────────────────────

async def test_goal_templates(client):
    response = await client.get("/api/v1/goals/templates")
    assert response.status_code == 200
    types = [t["type"] for t in response.json()["templates"]]
    assert types == ["reduce-transport", "reduce-energy", "diet-change", "zero-waste", "streak"]


async def test_create_goal_awards_xp(client, auth_headers):
    response = await client.post(
        "/api/v1/goals",
        json={"type": "reduce-transport", "title": "Drive less", "target_value": 2.0, "duration": "week"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["xp_awarded"] == 15
    assert data["goal"]["xp_reward"] == 100
    assert data["goal"]["days_remaining"] == 7
    assert data["goal"]["progress"] == 0

    me = (await client.get("/api/v1/users/me", headers=auth_headers)).json()
    assert me["xp"] == 15


async def test_bike_trip_completes_transport_goal(client, auth_headers):
    created = await client.post(
        "/api/v1/goals",
        json={"type": "reduce-transport", "title": "Drive less", "target_value": 2.0, "duration": "week"},
        headers=auth_headers,
    )
    goal_id = created.json()["goal"]["id"]

    data = await log(client, auth_headers, category="transport", description="Bike to work", value=10)
    assert data["completed_goals"] == [goal_id]

    goals = (await client.get("/api/v1/goals", headers=auth_headers)).json()["goals"]
    assert goals[0]["status"] == "completed"
    assert goals[0]["current_value"] == pytest.approx(2.1)
    assert goals[0]["progress"] == 100

    me = (await client.get("/api/v1/users/me", headers=auth_headers)).json()
    assert me["xp"] == 15 + 10 + 25 + 100


async def test_goal_progress_endpoint(client, auth_headers):
    created = await client.post(
        "/api/v1/goals", json={"type": "zero-waste", "target_value": 4, "duration": "month"}, headers=auth_headers
    )
    goal = created.json()["goal"]
    assert goal["xp_reward"] == 150
    assert goal["title"] == "zero-waste reduction goal"

    response = await client.put(f"/api/v1/goals/{goal['id']}/progress", json={"increment": 1}, headers=auth_headers)
    data = response.json()
    assert data["completed"] is False
    assert data["goal"]["progress"] == 25

    response = await client.put(
        f"/api/v1/goals/{goal['id']}/progress", json={"current_value": 4}, headers=auth_headers
    )
    data = response.json()
    assert data["completed"] is True
    assert data["xp_awarded"] == 150


async def test_abandon_and_delete_goal(client, auth_headers):
    created = await client.post("/api/v1/goals", json={"type": "streak"}, headers=auth_headers)
    goal_id = created.json()["goal"]["id"]

    response = await client.put(f"/api/v1/goals/{goal_id}/abandon", headers=auth_headers)
    assert response.status_code == 200

    active = (await client.get("/api/v1/goals", params={"status": "active"}, headers=auth_headers)).json()
    assert active["goals"] == []

    assert (await client.delete(f"/api/v1/goals/{goal_id}", headers=auth_headers)).status_code == 200
    assert (await client.delete(f"/api/v1/goals/{goal_id}", headers=auth_headers)).status_code == 404


async def test_update_goal_fields_and_duration(client, auth_headers):
    created = await client.post(
        "/api/v1/goals", json={"type": "reduce-transport", "duration": "week"}, headers=auth_headers
    )
    goal = created.json()["goal"]

    response = await client.put(
        f"/api/v1/goals/{goal['id']}",
        json={"title": "Cycle more", "target_value": 5, "duration_days": 14, "xp_reward": 120},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Goal updated"
    assert data["goal"]["title"] == "Cycle more"
    assert data["goal"]["target_value"] == 5.0
    assert data["goal"]["duration"] == "14 days"
    assert data["goal"]["xp_reward"] == 120
    assert data["goal"]["type"] == "reduce-transport"
    assert date.fromisoformat(data["goal"]["end_date"]) - date.fromisoformat(goal["start_date"]) == timedelta(days=14)

    unchanged = await client.put(f"/api/v1/goals/{goal['id']}", json={}, headers=auth_headers)
    assert unchanged.json()["goal"]["title"] == "Cycle more"


async def test_update_goal_of_another_user_is_not_found(client, auth_headers):
    created = await client.post("/api/v1/goals", json={"type": "streak"}, headers=auth_headers)
    goal_id = created.json()["goal"]["id"]
    other = await create_user(client, "bjorn")

    response = await client.put(f"/api/v1/goals/{goal_id}", json={"title": "Mine now"}, headers=other)
    assert response.status_code == 404
    response = await client.put("/api/v1/goals/9999", json={"title": "Nope"}, headers=auth_headers)
    assert response.status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Insights
# ─────────────────────────────────────────────────────────────────────────────

async def test_insights_require_user(client):
    assert (await client.get("/api/v1/insights")).status_code == 401


async def test_rule_insights_with_statistics(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)

    response = await client.get("/api/v1/insights", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "rules"
    assert data["model"] is None
    assert all(not i["id"].startswith("ai-") for i in data["insights"])

    stats = data["statistics"]
    assert stats["total_emissions"] == pytest.approx(4.2)
    assert stats["activity_count"] == 1
    assert stats["worst_category"] == "transport"
    assert stats["weekly_comparison"]["this_week"] == pytest.approx(4.2)


async def test_onboarding_insights_respect_limit(client, auth_headers):
    data = (await client.get("/api/v1/insights", params={"limit": 2}, headers=auth_headers)).json()
    assert [i["id"] for i in data["insights"]] == ["get-started-transport", "get-started-electricity"]
    assert (await client.get("/api/v1/insights", params={"limit": 0}, headers=auth_headers)).status_code == 422


async def test_ai_insights_are_cached(client, auth_headers, fake_backend):
    fake_backend.available = True
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)

    first = (await client.get("/api/v1/insights", headers=auth_headers)).json()
    second = (await client.get("/api/v1/insights", headers=auth_headers)).json()

    assert first["source"] == second["source"] == "ai"
    assert first["model"] == "fake-llm"
    assert [i["id"] for i in first["insights"]] == ["ai-transport", "ai-electricity"]
    assert first["weekly_challenge"]["title"] == "This week: bike twice"
    assert fake_backend.complete_calls == 1
    assert second["generated_at"] == first["generated_at"]

    refreshed = (await client.post("/api/v1/insights/refresh", headers=auth_headers)).json()
    assert refreshed["source"] == "ai"
    assert refreshed["message"] == "AI insights regenerated"
    assert fake_backend.complete_calls == 2


async def test_ai_insight_detail_from_cache(client, auth_headers, fake_backend):
    fake_backend.available = True
    await client.get("/api/v1/insights", headers=auth_headers)

    response = await client.get("/api/v1/insights/ai-transport", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Replace 2 car trips"
    assert response.json()["tips"]


async def test_unparseable_ai_reply_falls_back(client, auth_headers, fake_backend):
    fake_backend.available = True
    fake_backend.reply = "Sorry, I can't help with that."

    data = (await client.get("/api/v1/insights", headers=auth_headers)).json()
    assert data["source"] == "rules"
    assert data["summary"]


async def test_refresh_without_ai(client, auth_headers):
    response = await client.post("/api/v1/insights/refresh", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["source"] == "rules"


async def test_dismiss_insight(client, auth_headers):
    response = await client.post("/api/v1/insights/get-started-transport/dismiss", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["dismissed"] is True

    data = (await client.get("/api/v1/insights", headers=auth_headers)).json()
    assert [i["id"] for i in data["insights"]] == ["get-started-electricity", "get-started-diet"]


async def test_insight_detail_and_unknown_id(client, auth_headers):
    response = await client.get("/api/v1/insights/get-started-diet", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["category"] == "diet"

    response = await client.get("/api/v1/insights/does-not-exist", headers=auth_headers)
    assert response.status_code == 404


async def test_category_insights_fold_synonyms(client, auth_headers):
    response = await client.get("/api/v1/insights/category/energy", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["category"] == "electricity"
    assert data["emissions"] == 0.0
    assert len(data["tips"]) == 5


@pytest.mark.parametrize("name", ["total", "car"])
async def test_category_insights_reject_non_category_names(client, auth_headers, name):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    response = await client.get(f"/api/v1/insights/category/{name}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["emissions"] == 0.0
    assert data["insights"] == []
    assert data["tips"] == []


async def test_trends_endpoint(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    response = await client.get("/api/v1/insights/analysis/trends", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert isinstance(data["trends"], list)
    assert data["encouragement"]


# ─────────────────────────────────────────────────────────────────────────────
# Stats
# ─────────────────────────────────────────────────────────────────────────────

async def test_stats_require_user(client):
    assert (await client.get("/api/v1/stats/dashboard")).status_code == 401


async def test_dashboard_stats(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)

    response = await client.get("/api/v1/stats/dashboard", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["today"] == {"emissions": 4.2, "change": 0.0, "trend": "down"}
    assert data["week"]["emissions"] == 4.2
    assert data["month"]["emissions"] == 4.2
    assert data["annual"] == {"projection": 1.53, "unit": "tons"}
    assert data["comparison"] == {"global_percent": -68, "is_below": True}
    assert data["user"] == {"xp": 35, "level": 1, "streak": 1}


async def test_chart_data(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    await log(client, auth_headers, category="diet", description="vegan day", value=1)

    response = await client.get("/api/v1/stats/charts", params={"range": "week"}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["range"] == "week"
    assert len(data["timeline"]["labels"]) == 7
    assert data["timeline"]["data"][-1] == pytest.approx(7.1)
    assert [c["category"] for c in data["categories"]] == ["transport", "diet"]
    assert [c["percentage"] for c in data["categories"]] == [59, 41]

    year = (await client.get("/api/v1/stats/charts", params={"range": "year"}, headers=auth_headers)).json()
    assert len(year["timeline"]["data"]) == 12

    response = await client.get("/api/v1/stats/charts", params={"range": "decade"}, headers=auth_headers)
    assert response.status_code == 422


async def test_regional_comparison(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)

    data = (await client.get("/api/v1/stats/comparison", params={"region": "asia"}, headers=auth_headers)).json()
    assert data["region"] == "asia"
    assert data["user"] == {"annual_tons": 1.53, "percentage": 32}
    assert data["regional"] == {"annual_tons": 4.5, "percentage": 94}
    assert data["global_average"]["percentage"] == 100
    assert data["target"]["annual_tons"] == 2.0


async def test_day_summary_counts_carbon_saved(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Bike to work", value=10)
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)

    today = date.today().isoformat()
    data = (await client.get(f"/api/v1/stats/summary/{today}", headers=auth_headers)).json()
    assert data["date"] == today
    assert len(data["activities"]) == 2
    assert data["summary"] == {"count": 2, "total_emissions": 4.2, "carbon_saved": 1.5}

    empty = (await client.get("/api/v1/stats/summary/2020-01-01", headers=auth_headers)).json()
    assert empty["summary"]["count"] == 0
    assert (await client.get("/api/v1/stats/summary/yesterday", headers=auth_headers)).status_code == 422


# ─────────────────────────────────────────────────────────────────────────────
# Leaderboard
# ─────────────────────────────────────────────────────────────────────────────

async def test_leaderboard_is_public(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    await create_user(client, "bjorn")

    response = await client.get("/api/v1/leaderboard")
    assert response.status_code == 200
    data = response.json()
    assert data["total_users"] == 2
    assert data["user_rank"] is None
    first, second = data["leaderboard"]
    assert (first["rank"], first["username"], first["xp"]) == (1, "greta", 35)
    assert first["badge_count"] == 1
    assert first["reduction_percent"] == 68
    assert first["is_current_user"] is False
    assert (second["username"], second["reduction_percent"]) == ("bjorn", 0)


async def test_leaderboard_flags_current_user(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    bjorn = await create_user(client, "bjorn")

    data = (await client.get("/api/v1/leaderboard", headers=bjorn)).json()
    assert [e["is_current_user"] for e in data["leaderboard"]] == [False, True]
    assert data["user_rank"]["rank"] == 2
    assert data["user_rank"]["username"] == "bjorn"
    assert data["user_rank"]["badge_count"] == 0

    limited = (await client.get("/api/v1/leaderboard", params={"limit": 1}, headers=bjorn)).json()
    assert len(limited["leaderboard"]) == 1
    assert limited["user_rank"]["rank"] == 2


async def test_weekly_and_streak_leaderboards(client, auth_headers):
    await log(client, auth_headers, category="transport", description="Drive to work", value=20)
    await create_user(client, "bjorn")

    weekly = (await client.get("/api/v1/leaderboard/weekly", headers=auth_headers)).json()
    assert [e["username"] for e in weekly["leaderboard"]] == ["greta"]
    assert weekly["leaderboard"][0]["this_week_emissions"] == 4.2
    assert weekly["leaderboard"][0]["improvement_percent"] == 0
    assert weekly["leaderboard"][0]["is_current_user"] is True
    assert weekly["start_date"] == (date.today() - timedelta(days=7)).isoformat()

    streaks = (await client.get("/api/v1/leaderboard/streaks")).json()
    assert [(e["username"], e["streak"]) for e in streaks["leaderboard"]] == [("greta", 1)]


# ─────────────────────────────────────────────────────────────────────────────
# Middleware
# ─────────────────────────────────────────────────────────────────────────────

async def test_correlation_id_is_echoed(client):
    response = await client.get("/api/v1/activities/factors", headers={"X-Correlation-ID": "abc123"})
    assert response.headers["X-Correlation-ID"] == "abc123"
    assert float(response.headers["X-Response-Time-Ms"]) >= 0


async def test_correlation_id_is_generated(client):
    response = await client.get("/api/v1/health")
    assert len(response.headers["X-Correlation-ID"]) == 12
