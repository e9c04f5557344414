"""
CarbonWise – Health Check Endpoints
====================================
  GET /api/v1/health        → liveness, no I/O
  GET /api/v1/health/ready  → database + disk; 503 when the database is down
  GET /api/v1/health/deep   → database, disk, process memory, AI service

The AI service is optional: when it is unreachable the API keeps serving
rule-based insights, so it can only ever make the deep check ``degraded``.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Literal, Optional

import psutil
from fastapi import APIRouter, Depends, Response, status
from loguru import logger
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.api.deps import get_ai_backend
from carbonwise.config import settings
from carbonwise.database.session import get_db
from carbonwise.services.ai_client import TextGenerationBackend

router = APIRouter()

_START = time.time()

DISK_DEGRADED_PERCENT = 85
MEMORY_DEGRADED_MB = 1500

ComponentStatus = Literal["ok", "degraded", "failed"]


# ─────────────────────────────────────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status:      str
    service:     str
    environment: str
    timestamp:   datetime
    version:     str = "1.0.0"
    uptime_s:    float = 0.0


class ComponentHealth(BaseModel):
    name:       str
    status:     ComponentStatus
    detail:     str = ""
    latency_ms: float = 0.0


class ReadinessResponse(BaseModel):
    ready:     bool
    database:  ComponentHealth
    disk:      ComponentHealth
    timestamp: datetime


class DeepHealthResponse(BaseModel):
    overall:    Literal["healthy", "degraded", "critical"]
    components: list[ComponentHealth]
    uptime_s:   float
    timestamp:  datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uptime() -> float:
    return round(time.time() - _START, 1)


# ─────────────────────────────────────────────────────────────────────────────
# Component checks
# ─────────────────────────────────────────────────────────────────────────────

async def _check_db(db: AsyncSession) -> ComponentHealth:
    t0 = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: {}", exc)
        return ComponentHealth(name="database", status="failed", detail=str(exc)[:200])
    return ComponentHealth(
        name="database",
        status="ok",
        detail="sqlite" if settings.is_sqlite else "reachable",
        latency_ms=round((time.perf_counter() - t0) * 1000, 2),
    )


def _check_disk() -> ComponentHealth:
    usage = psutil.disk_usage("/")
    return ComponentHealth(
        name="disk",
        status="ok" if usage.percent < DISK_DEGRADED_PERCENT else "degraded",
        detail=f"{usage.free // (1024 ** 3)} GB free ({usage.percent:.1f}% used)",
    )


def _check_memory() -> ComponentHealth:
    rss_mb = psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    return ComponentHealth(
        name="memory",
        status="ok" if rss_mb < MEMORY_DEGRADED_MB else "degraded",
        detail=f"Process RSS: {rss_mb:.0f} MB",
    )


async def _check_ai_service(backend: Optional[TextGenerationBackend]) -> ComponentHealth:
    if backend is None:
        return ComponentHealth(name="ai_service", status="ok", detail="AI insights disabled")
    t0 = time.perf_counter()
    try:
        reachable = await backend.probe()
    except Exception as exc:
        logger.warning("AI service health check raised: {}", exc)
        reachable = False
    return ComponentHealth(
        name="ai_service",
        status="ok" if reachable else "degraded",
        detail=f"model {backend.model} reachable" if reachable else "unreachable, serving rule-based insights",
        latency_ms=round((time.perf_counter() - t0) * 1000, 2),
    )


def _overall(components: list[ComponentHealth]) -> str:
    statuses = {c.status for c in components}
    if "failed" in statuses:
        return "critical"
    return "degraded" if "degraded" in statuses else "healthy"


# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@router.get("", response_model=HealthResponse, summary="Liveness probe")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        environment=settings.app_env,
        timestamp=_now(),
        uptime_s=_uptime(),
    )


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness probe")
async def readiness_check(response: Response, db: AsyncSession = Depends(get_db)) -> ReadinessResponse:
    db_health = await _check_db(db)
    ready = db_health.status == "ok"
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(ready=ready, database=db_health, disk=_check_disk(), timestamp=_now())


@router.get("/deep", response_model=DeepHealthResponse, summary="Deep health diagnostic")
async def deep_health_check(
    db: AsyncSession = Depends(get_db),
    backend: Optional[TextGenerationBackend] = Depends(get_ai_backend),
) -> DeepHealthResponse:
    components = [
        await _check_db(db),
        _check_disk(),
        _check_memory(),
        await _check_ai_service(backend),
    ]
    overall = _overall(components)
    if overall == "critical":
        logger.error("Deep health: failed components {}", [c.name for c in components if c.status == "failed"])
    return DeepHealthResponse(overall=overall, components=components, uptime_s=_uptime(), timestamp=_now())
