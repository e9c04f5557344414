"""
CarbonWise – Shared FastAPI Dependencies
=========================================
Authentication happens upstream; by the time a request reaches us the
caller's id travels in the ``X-User-Id`` header.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from carbonwise.config import settings
from carbonwise.database.repository import ActivityRepository
from carbonwise.database.session import User, get_db
from carbonwise.services.ai_client import AIInsightAdapter, OllamaBackend, TextGenerationBackend
from carbonwise.services.insight_cache import SqlInsightCache
from carbonwise.services.insight_service import InsightService


def get_repository(db: AsyncSession = Depends(get_db)) -> ActivityRepository:
    return ActivityRepository(db)


async def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    repository: ActivityRepository = Depends(get_repository),
) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    user = await repository.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def get_optional_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    repository: ActivityRepository = Depends(get_repository),
) -> Optional[User]:
    """The caller when the header names a known user, otherwise None."""
    if x_user_id is None:
        return None
    return await repository.get_user(x_user_id)


@lru_cache(maxsize=1)
def _ollama_backend() -> OllamaBackend:
    return OllamaBackend()


def get_ai_backend() -> Optional[TextGenerationBackend]:
    """The process-wide Ollama client, or None when AI insights are switched off."""
    return _ollama_backend() if settings.ai_insights_enabled else None


def get_insight_service(
    repository: ActivityRepository = Depends(get_repository),
    backend: Optional[TextGenerationBackend] = Depends(get_ai_backend),
) -> InsightService:
    return InsightService(
        repository,
        SqlInsightCache(repository.session),
        AIInsightAdapter(backend),
    )
