"""
goals.py — Reduction Goals API Routes
======================================
Endpoints:
    GET    /api/v1/goals                  → goals with progress %, days remaining, expiry flag
    POST   /api/v1/goals                  → create a goal (+15 XP)
    GET    /api/v1/goals/templates        → suggested goal types
    PUT    /api/v1/goals/{id}/progress    → set or increment progress; completion awards XP
    PUT    /api/v1/goals/{id}             → edit title, type, target, duration or XP reward
    PUT    /api/v1/goals/{id}/abandon     → mark abandoned
    DELETE /api/v1/goals/{id}             → remove
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.api.deps import get_current_user, get_repository
from carbonwise.api.schemas.goals import (
    GoalCreate,
    GoalCreatedResponse,
    GoalListResponse,
    GoalProgressResponse,
    GoalProgressUpdate,
    GoalResponse,
    GoalTemplate,
    GoalTemplatesResponse,
    GoalUpdate,
    GoalUpdatedResponse,
)
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import Goal, User, get_db
from carbonwise.features.gamification import GOAL_CREATED_XP, goal_xp_reward
from carbonwise.services.activity_service import award_xp, check_badges, complete_goal_if_reached

router = APIRouter()

DURATION_DAYS = {"week": 7, "2weeks": 14, "month": 30, "3months": 90}

TEMPLATES = (
    GoalTemplate(type="reduce-transport", title="Reduce Transport Emissions",
                 description="Cut your transportation carbon footprint", target_unit="kg"),
    GoalTemplate(type="reduce-energy", title="Reduce Energy Usage",
                 description="Lower your electricity consumption", target_unit="kg"),
    GoalTemplate(type="diet-change", title="Meatless Days Challenge",
                 description="Go vegetarian for specified days", target_unit="kg"),
    GoalTemplate(type="zero-waste", title="Zero Waste Challenge",
                 description="Minimize landfill waste", target_unit="kg"),
    GoalTemplate(type="streak", title="Logging Streak",
                 description="Log activities consistently", target_unit="days"),
)


def goal_view(goal: Goal, today: Optional[date] = None) -> GoalResponse:
    """Goal row plus the derived progress fields."""
    today = today or date.today()
    progress = min(100, round(goal.current_value / goal.target_value * 100)) if goal.target_value else 0
    days_remaining = (goal.end_date - today).days
    view = GoalResponse.model_validate(goal)
    view.progress = progress
    view.days_remaining = max(0, days_remaining)
    view.is_expired = days_remaining < 0 and goal.status == "active"
    return view


async def _owned_goal(db: AsyncSession, user_id: int, goal_id: int) -> Goal:
    result = await db.execute(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id))
    goal = result.scalar_one_or_none()
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return goal


@router.get("/templates", response_model=GoalTemplatesResponse)
async def get_goal_templates():
    return GoalTemplatesResponse(templates=list(TEMPLATES))


@router.get("", response_model=GoalListResponse)
async def list_goals(
    goal_status: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Goal).where(Goal.user_id == user.id)
    if goal_status:
        stmt = stmt.where(Goal.status == goal_status)
    result = await db.execute(stmt.order_by(desc(Goal.created_at), desc(Goal.id)))
    today = date.today()
    return GoalListResponse(goals=[goal_view(g, today) for g in result.scalars().all()])


@router.post("", response_model=GoalCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_goal(
    body: GoalCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    days = body.duration_days or DURATION_DAYS[body.duration]
    start = date.today()
    goal = Goal(
        user_id=user.id,
        type=body.type,
        title=body.title or f"{body.type} reduction goal",
        target_value=body.target_value,
        current_value=0.0,
        duration=f"{body.duration_days} days" if body.duration_days else body.duration,
        xp_reward=goal_xp_reward(days),
        status="active",
        start_date=start,
        end_date=start + timedelta(days=days),
    )
    db.add(goal)
    award_xp(user, GOAL_CREATED_XP)
    await db.flush()
    await db.refresh(goal)
    logger.info("🎯 Goal '{}' created for user {} ({} days)", goal.title, user.id, days)
    return GoalCreatedResponse(
        message="Goal created successfully",
        goal=goal_view(goal, start),
        xp_awarded=GOAL_CREATED_XP,
    )


@router.put("/{goal_id}/progress", response_model=GoalProgressResponse)
async def update_goal_progress(
    goal_id: int,
    body: GoalProgressUpdate,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    goal = await _owned_goal(repository.session, user.id, goal_id)
    if body.current_value is not None:
        goal.current_value = body.current_value
    if body.increment:
        goal.current_value += body.increment

    completed = complete_goal_if_reached(user, goal)
    if completed:
        await check_badges(repository, user)
    await repository.session.flush()

    return GoalProgressResponse(
        message="Congratulations! Goal completed!" if completed else "Progress updated",
        goal=goal_view(goal),
        xp_awarded=goal.xp_reward if completed else 0,
        completed=goal.status == "completed",
    )


@router.put("/{goal_id}", response_model=GoalUpdatedResponse)
async def update_goal(
    goal_id: int,
    body: GoalUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit a goal in place.  A new ``duration_days`` moves the end date relative to the start date."""
    goal = await _owned_goal(db, user.id, goal_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    days = changes.pop("duration_days", None)
    for field, value in changes.items():
        setattr(goal, field, value)
    if days is not None:
        goal.end_date = goal.start_date + timedelta(days=days)
        goal.duration = f"{days} days"
    await db.flush()
    await db.refresh(goal)
    logger.info("✏️ Goal {} updated for user {}: {}", goal_id, user.id, sorted(body.model_fields_set))
    return GoalUpdatedResponse(message="Goal updated", goal=goal_view(goal))


@router.put("/{goal_id}/abandon")
async def abandon_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    goal = await _owned_goal(db, user.id, goal_id)
    goal.status = "abandoned"
    await db.flush()
    return {"message": "Goal abandoned", "id": goal_id}


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    goal = await _owned_goal(db, user.id, goal_id)
    await db.delete(goal)
    await db.flush()
    return {"message": "Goal deleted", "id": goal_id}
