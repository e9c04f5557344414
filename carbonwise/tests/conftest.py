"""
Shared fixtures: an in-memory SQLite database, a fake text-generation
backend, and an httpx client wired to the app with both swapped in.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from dataclasses import dataclass
from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carbonwise.api.deps import get_ai_backend
from carbonwise.models import Base, User, get_db
from carbonwise.main import app


# ─────────────────────────────────────────────────────────────────────────────
# Plain activity records for the pure feature modules
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ActivityRecord:
    category: str
    description: str
    value: float
    emissions: float
    date: date


@pytest.fixture
def today() -> date:
    return date(2024, 6, 15)


@pytest.fixture
def make_activity(today):
    def _make(category, description="", value=1.0, emissions=0.0, days_ago=0):
        return ActivityRecord(category, description, value, emissions, today - timedelta(days=days_ago))
    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Fake text-generation backend
# ─────────────────────────────────────────────────────────────────────────────

class FakeBackend:
    """Implements the backend interface without any network."""

    def __init__(self, reply: str = "", available: bool = True, error: Exception | None = None):
        self.model = "fake-llm"
        self.reply = reply
        self.available = available
        self.error = error
        self.probe_calls = 0
        self.prompts: list[str] = []

    @property
    def complete_calls(self) -> int:
        return len(self.prompts)

    async def probe(self) -> bool:
        self.probe_calls += 1
        return self.available

    async def complete(self, prompt, *, system_prompt=None, temperature=0.7, max_tokens=500) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


AI_REPLY = """Here is the analysis you asked for:

```json
{
  "summary": "42.0 kg this month = 11% of average. You are well below average.",
  "topInsight": {
    "title": "Replace 2 car trips",
    "description": "4 trips × 5.0 kg = 20.0 kg → cut 2 = save 10 kg",
    "category": "transport",
    "potentialSavings": 10,
    "weeklySavings": 2.5
  },
  "insights": [
    {"title": "Replace 2 car trips", "description": "save 10 kg", "category": "transport", "potentialSavings": 10},
    {"title": "Bike more", "description": "duplicate category", "category": "Transport", "potentialSavings": 4},
    {"title": "Cut standby", "description": "save 2 kg", "category": "energy", "potentialSavings": "2 kg"}
  ],
  "weeklyChallenge": {"title": "This week: bike twice", "description": "target: 2 rides", "targetSavings": 3},
  "encouragement": "You already cut 15% this week."
}
```
Let me know if you need anything else!"""


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Unavailable by default, so API tests get rule-based insights unless they opt in."""
    return FakeBackend(reply=AI_REPLY, available=False)


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as sess:
        yield sess


@pytest_asyncio.fixture
async def db_user(session) -> User:
    user = User(username="tester", email="tester@example.com", xp=0, level=1, streak=0)
    session.add(user)
    await session.flush()
    return user


# ─────────────────────────────────────────────────────────────────────────────
# HTTP client
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(engine, fake_backend):
    """Async test client for the FastAPI app, backed by the in-memory database."""
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async def override_get_db():
        async with factory() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_backend] = lambda: fake_backend
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def auth_headers(client) -> dict:
    """Create a user through the API and return the header that identifies them."""
    response = await client.post("/api/v1/users", json={"username": "greta", "email": "greta@example.com"})
    assert response.status_code == 201
    return {"X-User-Id": str(response.json()["id"])}
