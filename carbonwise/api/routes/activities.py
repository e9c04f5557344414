"""
activities.py — Activity Log API Routes
========================================
Endpoints:
    GET    /api/v1/activities            → filtered, paged activity list
    POST   /api/v1/activities            → log an activity (streak, XP, badges, goals)
    PUT    /api/v1/activities/{id}       → partial update, emissions recomputed when needed
    DELETE /api/v1/activities/{id}       → remove an activity
    GET    /api/v1/activities/factors    → static emission-factor tables
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from carbonwise.api.deps import get_current_user, get_repository
from carbonwise.api.schemas.activities import (
    ActivityCreate,
    ActivityCreatedResponse,
    ActivityListResponse,
    ActivityResponse,
    ActivityUpdate,
    BadgeResponse,
)
from carbonwise.core.exceptions import NotFoundError
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import User
from carbonwise.features.emission_calculator import factor_tables
from carbonwise.services import activity_service

router = APIRouter()


@router.get("/factors")
async def get_emission_factors():
    """Public: the factor tables emissions are computed from (kg CO2e per unit)."""
    return {"factors": factor_tables()}


@router.get("", response_model=ActivityListResponse)
async def list_activities(
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    activities, total = await repository.list_activities(
        user.id,
        on_date=on_date,
        start_date=start_date,
        end_date=end_date,
        category=category,
        limit=limit,
        offset=offset,
    )
    return ActivityListResponse(
        activities=[ActivityResponse.model_validate(a) for a in activities],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=ActivityCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    body: ActivityCreate,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    result = await activity_service.log_activity(
        repository,
        user,
        category=body.category,
        value=body.value,
        description=body.description,
        unit=body.unit,
        on_date=body.date,
        sub_type=body.sub_type,
        fuel_type=body.fuel_type,
    )
    return ActivityCreatedResponse(
        message="Activity logged successfully",
        activity=ActivityResponse.model_validate(result.activity),
        activity_type=result.activity_type,
        xp_earned=result.xp_earned,
        streak=result.streak,
        new_badges=[
            BadgeResponse(
                key=b.key, name=b.name, description=b.description, icon=b.icon, xp_reward=b.xp_reward
            )
            for b in result.new_badges
        ],
        completed_goals=[g.id for g in result.completed_goals],
    )


@router.put("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: int,
    body: ActivityUpdate,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    try:
        activity = await activity_service.update_activity(
            repository, user.id, activity_id, body.model_dump(exclude_unset=True)
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ActivityResponse.model_validate(activity)


@router.delete("/{activity_id}")
async def delete_activity(
    activity_id: int,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    try:
        await activity_service.delete_activity(repository, user.id, activity_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"message": "Activity deleted", "id": activity_id}
