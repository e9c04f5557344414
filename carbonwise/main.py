"""
CarbonWise – Application Entry Point
=====================================
Builds the FastAPI app: Loguru sinks, request middleware, CORS, the
``/api/v1`` routers and the lifespan that creates tables and disposes of
the engine.

Run:
    uvicorn carbonwise.main:app --reload          # development
    python main.py                                # same, settings-driven
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from carbonwise.api.deps import get_ai_backend
from carbonwise.api.middleware.request_logging import RequestLoggingMiddleware
from carbonwise.api.routes import activities, goals, health, insights, leaderboard, stats, users
from carbonwise.config import settings
from carbonwise.database.session import engine, init_db

API_PREFIX = "/api/v1"


# ─────────────────────────────────────────────────────────────────────────────
# Logging setup (Loguru)
# ─────────────────────────────────────────────────────────────────────────────
def _configure_logging() -> None:
    """Console + rotating file sink; every line carries the request and user id."""
    logger.remove()
    # Defaults for lines written outside a request
    logger.configure(extra={"request_id": "-", "user_id": "-"})

    fmt_console = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<magenta>{extra[request_id]}</magenta> | "
        "<cyan>{name}</cyan>:<cyan>{line}</cyan> – {message}"
    )
    logger.add(sys.stderr, format=fmt_console, level=settings.log_level, colorize=True)

    logger.add(
        settings.log_file,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | "
               "user={extra[user_id]} | {name}:{line} – {message}",
        level=settings.log_level,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=not settings.is_production,
    )
    logger.info("Logging initialised | env={} | level={}", settings.app_env, settings.log_level)


# ─────────────────────────────────────────────────────────────────────────────
# Lifespan – startup / shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_logging()
    logger.info("🌿 Starting up {}…", settings.app_name)

    await init_db()

    backend = get_ai_backend()
    if backend is None:
        logger.info("AI insights disabled, serving rule-based insights only")
    elif await backend.probe():
        logger.info("🤖 AI insights via {} at {}", backend.model, settings.ollama_api_base)
    else:
        # not fatal, every request re-probes
        logger.warning("Ollama not reachable at {}, insights fall back to rules", settings.ollama_url)

    logger.info("🚀 {} is live on {}:{}", settings.app_name, settings.app_host, settings.app_port)

    yield

    logger.info("🛑 Graceful shutdown initiated…")
    await engine.dispose()
    logger.info("👋 {} stopped.", settings.app_name)


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI application factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Personal carbon-footprint tracker: activity logging, emission estimates, "
            "goals, gamification and AI or rule-based reduction insights."
        ),
        version="1.0.0",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-User-Id", "X-Correlation-ID"],
        expose_headers=["X-Correlation-ID", "X-Response-Time-Ms"],
    )

    app.include_router(health.router,     prefix=f"{API_PREFIX}/health",     tags=["Health"])
    app.include_router(users.router,      prefix=f"{API_PREFIX}/users",      tags=["Users"])
    app.include_router(activities.router, prefix=f"{API_PREFIX}/activities", tags=["Activities"])
    app.include_router(goals.router,      prefix=f"{API_PREFIX}/goals",      tags=["Goals"])
    app.include_router(insights.router,   prefix=f"{API_PREFIX}/insights",   tags=["Insights"])
    app.include_router(stats.router,      prefix=f"{API_PREFIX}/stats",      tags=["Stats"])
    app.include_router(leaderboard.router, prefix=f"{API_PREFIX}/leaderboard", tags=["Leaderboard"])
    return app


app = create_app()
