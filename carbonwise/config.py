"""
CarbonWise – Central Configuration
===================================
Every tunable of the tracker in one pydantic-settings model, read from the
environment (or ``carbonwise/.env``) once at import time.

Groups:
  app / database      → server and SQLAlchemy engine
  ollama_*            → local text-generation service used for AI insights
  insight_* / rules_* → cache freshness, dismissal length, rule fallback size
  log_*               → Loguru sinks
  slow_request_ms     → request middleware warning threshold
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Package root (the directory holding this file) ───────────────────────────
BASE_DIR = Path(__file__).resolve().parent


def _under_base_dir(relative: str) -> Path:
    """Resolve a path relative to the package and make sure its parent exists."""
    path = (BASE_DIR / relative).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


# ─────────────────────────────────────────────────────────────────────────────
class AppSettings(BaseSettings):
    """CarbonWise settings.  Field names double as environment variable names."""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App ──────────────────────────────────────────────────────────────────
    app_name: str = Field("CarbonWise", description="Name shown in the docs and logs")
    app_env: str = Field("development", description="development | staging | production")
    app_debug: bool = Field(False, description="Echo SQL and enable auto-reload")
    app_host: str = Field("0.0.0.0")
    app_port: int = Field(8000, ge=1, le=65535)

    # ── Database ─────────────────────────────────────────────────────────────
    database_url: str = Field(
        "sqlite+aiosqlite:///./data/carbonwise.db",
        description="Async SQLAlchemy URL; relative sqlite paths live under the package",
    )
    database_pool_size: int = Field(10, ge=1, description="Ignored for sqlite")
    database_max_overflow: int = Field(20, ge=0, description="Ignored for sqlite")

    # ── Local text-generation service (Ollama) ───────────────────────────────
    ai_insights_enabled: bool = Field(True, description="Off → rule-based insights only")
    ollama_url: str = Field("http://localhost:11434")
    ollama_model: str = Field("llama3.1:8b")
    ollama_timeout: float = Field(60.0, gt=0, description="Seconds allowed for one completion")
    ollama_probe_timeout: float = Field(5.0, gt=0, description="Seconds allowed for the /api/tags probe")
    ollama_temperature: float = Field(0.4, ge=0.0, le=2.0)
    ollama_max_tokens: int = Field(800, ge=1)

    # ── Insights ─────────────────────────────────────────────────────────────
    insight_cache_hours: float = Field(6.0, gt=0, description="How long a cached AI payload stays fresh")
    insight_dismiss_days: int = Field(30, ge=1, description="Days before a dismissed insight re-surfaces")
    feature_window_days: int = Field(30, ge=1, description="Trailing window of activities fed to the insights")
    rules_insight_limit: int = Field(4, ge=1, description="Max insights in a rule-based payload")

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = Field("INFO")
    log_file: str = Field("logs/carbonwise.log")
    log_rotation: str = Field("10 MB")
    log_retention: str = Field("7 days")
    slow_request_ms: float = Field(2000.0, gt=0, description="Requests slower than this log a warning")

    # ── CORS ─────────────────────────────────────────────────────────────────
    allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:5173,http://localhost:8000",
        description="Comma-separated browser origins allowed to call the API",
    )

    # ── Derived values ───────────────────────────────────────────────────────
    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def insight_cache_ttl(self) -> timedelta:
        return timedelta(hours=self.insight_cache_hours)

    @property
    def ollama_api_base(self) -> str:
        """OpenAI-compatible root served by Ollama."""
        return f"{self.ollama_url}/v1"

    # ── Validation ───────────────────────────────────────────────────────────
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"log_level must be one of {sorted(valid)}")
        return v.upper()

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        if v.lower() not in {"development", "staging", "production"}:
            raise ValueError("app_env must be development, staging or production")
        return v.lower()

    @field_validator("ollama_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("database_url", mode="before")
    @classmethod
    def anchor_sqlite_path(cls, v: str) -> str:
        if v.startswith("sqlite") and "///./" in v:
            driver, rel_path = v.split("///./", 1)
            return f"{driver}///{_under_base_dir(rel_path)}"
        return v

    @field_validator("log_file", mode="before")
    @classmethod
    def anchor_log_file(cls, v: str) -> str:
        return v if Path(v).is_absolute() else str(_under_base_dir(v))


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Settings singleton; parsed on first call."""
    return AppSettings()


settings: AppSettings = get_settings()
