"""
CarbonWise – Database Session & Models
=======================================
SQLAlchemy async engine, session factory, and ORM model definitions.
SQLite (aiosqlite) by default; any async SQLAlchemy URL works through
DATABASE_URL.
"""

from __future__ import annotations

import datetime as dt
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from carbonwise.config import settings
from loguru import logger


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they were written as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Async engine + session factory
# ─────────────────────────────────────────────────────────────────────────────

# SQLite (aiosqlite) does not accept queue-pool sizing arguments
_pool_kwargs = (
    {}
    if settings.is_sqlite
    else {"pool_size": settings.database_pool_size, "max_overflow": settings.database_max_overflow}
)

engine = create_async_engine(
    settings.database_url,
    echo=settings.app_debug,           # log all SQL in debug mode
    future=True,
    **_pool_kwargs,
)

AsyncSessionFactory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


# ─────────────────────────────────────────────────────────────────────────────
# Base declarative model
# ─────────────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """All ORM models inherit from this base."""


# ─────────────────────────────────────────────────────────────────────────────
# ORM Models
# ─────────────────────────────────────────────────────────────────────────────

class User(Base):
    """A tracked person with gamification state.  Credentials live elsewhere."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class Activity(Base):
    """One logged activity.  ``emissions`` is frozen at write time."""

    __tablename__ = "activities"
    __table_args__ = (Index("idx_activities_user_date", "user_id", "date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    emissions: Mapped[float] = mapped_column(Float, nullable=False)   # kg CO2e
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class CalculatorProfile(Base):
    """Qualitative household answers the activity log cannot reveal."""

    __tablename__ = "calculator_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    energy_source: Mapped[str] = mapped_column(String(32), default="mixed")
    fuel_type: Mapped[str] = mapped_column(String(32), default="petrol")
    heating_type: Mapped[str] = mapped_column(String(32), default="natural-gas")
    diet_type: Mapped[str] = mapped_column(String(32), default="average")
    local_food: Mapped[bool] = mapped_column(Boolean, default=False)
    low_food_waste: Mapped[bool] = mapped_column(Boolean, default=False)
    compost: Mapped[bool] = mapped_column(Boolean, default=False)
    recycle_paper: Mapped[bool] = mapped_column(Boolean, default=True)
    recycle_plastic: Mapped[bool] = mapped_column(Boolean, default=True)
    recycle_glass: Mapped[bool] = mapped_column(Boolean, default=True)
    recycle_metal: Mapped[bool] = mapped_column(Boolean, default=False)
    single_use: Mapped[str] = mapped_column(String(16), default="medium")   # low / medium / high
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Goal(Base):
    """A user-defined reduction target."""

    __tablename__ = "goals"
    __table_args__ = (Index("idx_goals_user_status", "user_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)       # e.g. "reduce-transport"
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    current_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    duration: Mapped[str] = mapped_column(String(32), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)  # active / completed / abandoned
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class UserBadge(Base):
    """A badge a user has earned.  Badge definitions are static (see features.gamification)."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_key: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class Insight(Base):
    """
    Insight bookkeeping rows.

    insight_type = "ai_generated" → cached AI payload, JSON in ``payload``
    insight_type = <insight id>   → dismissal marker (is_dismissed=True, expires_at set)
    """

    __tablename__ = "insights"
    __table_args__ = (Index("idx_insights_user_type", "user_id", "insight_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    insight_type: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[str] = mapped_column(Text, default="", nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_dismissed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


# ─────────────────────────────────────────────────────────────────────────────
# Initialise tables
# ─────────────────────────────────────────────────────────────────────────────

async def init_db() -> None:
    """Create all tables (idempotent – safe to call on every startup)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database tables initialised")


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI dependency
# ─────────────────────────────────────────────────────────────────────────────

async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; roll back on error, close on exit."""
    async with AsyncSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
