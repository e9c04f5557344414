"""
users.py — Users, Gamification State & Calculator Profile
==========================================================
Endpoints:
    POST /api/v1/users                → create a user (plus default calculator profile)
    GET  /api/v1/users/me             → XP, level, streak
    GET  /api/v1/users/me/badges      → every badge, earned or not
    GET  /api/v1/users/me/profile     → calculator profile
    PUT  /api/v1/users/me/profile     → update calculator profile
"""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.api.deps import get_current_user, get_repository
from carbonwise.api.schemas.activities import BadgeResponse
from carbonwise.api.schemas.users import (
    BadgeListResponse,
    CalculatorProfileSchema,
    CalculatorProfileUpdate,
    LevelProgress,
    UserCreate,
    UserResponse,
)
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import CalculatorProfile, User, UserBadge, get_db
from carbonwise.features.gamification import BADGES, level_progress, level_title

router = APIRouter()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        xp=user.xp,
        level=user.level,
        level_title=level_title(user.level),
        streak=user.streak,
        last_activity_date=user.last_activity_date,
        progress=LevelProgress(**level_progress(user.xp, user.level)),
        created_at=user.created_at,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a user record.  Credentials are managed by the auth layer in front of us."""
    email = body.email.lower()
    existing = await db.execute(
        select(User.id).where(or_(User.username == body.username, User.email == email))
    )
    if existing.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username or email already registered")

    user = User(username=body.username, email=email, xp=0, level=1, streak=0)
    db.add(user)
    await db.flush()
    db.add(CalculatorProfile(user_id=user.id))
    await db.flush()
    await db.refresh(user)
    logger.info("👤 User {} created ({})", user.id, user.username)
    return _user_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return _user_response(user)


@router.get("/me/badges", response_model=BadgeListResponse)
async def get_my_badges(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """All badges with an earned flag, in definition order."""
    result = await db.execute(
        select(UserBadge.badge_key, UserBadge.earned_at).where(UserBadge.user_id == user.id)
    )
    earned = dict(result.all())
    badges = [
        BadgeResponse(
            key=b.key,
            name=b.name,
            description=b.description,
            icon=b.icon,
            xp_reward=b.xp_reward,
            earned=b.key in earned,
            earned_at=earned.get(b.key),
        )
        for b in BADGES
    ]
    return BadgeListResponse(badges=badges, earned_count=len(earned))


@router.get("/me/profile", response_model=CalculatorProfileSchema)
async def get_my_profile(
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    profile = await repository.get_calculator_profile(user.id)
    if profile is None:
        return CalculatorProfileSchema()
    return profile


@router.put("/me/profile", response_model=CalculatorProfileSchema)
async def update_my_profile(
    body: CalculatorProfileUpdate,
    user: User = Depends(get_current_user),
    repository: ActivityRepository = Depends(get_repository),
):
    profile = await repository.get_calculator_profile(user.id)
    if profile is None:
        profile = CalculatorProfile(user_id=user.id)
        repository.session.add(profile)

    for name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(profile, name, value)
    await repository.session.flush()
    await repository.session.refresh(profile)
    return profile
