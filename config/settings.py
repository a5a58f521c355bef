"""
config/settings.py
Application settings loaded from environment variables.
Uses Pydantic BaseSettings for validation and type safety.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "the table"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ── Server ───────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30

    # ── Data / storage service ───────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str
    STORAGE_BUCKET: str = "class-photos"
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # ── Redis ────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CACHE_TTL: int = 300          # 5 minutes
    REDIS_BOOKING_LOCK_TTL: int = 30    # seconds

    # ── JWT (issued by the identity service) ─────────────────
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # ── Frontend ─────────────────────────────────────────────
    FRONTEND_URL: str = "http://localhost:8080"
    AUTH_REDIRECT_PATH: str = "/auth"
    ALLOWED_ORIGINS: str = "http://localhost:8080,http://localhost:5173"

    # ── Rate Limiting ────────────────────────────────────────
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_UNAUTH_PER_MINUTE: int = 20

    # ── Business Config ──────────────────────────────────────
    DEFAULT_CLASS_COST_CREDITS: int = 5
    DEFAULT_MAX_PARTICIPANTS: int = 10
    POUNDS_PER_CREDIT: int = 2
    MIN_TOP_UP_POUNDS: float = 2.0
    REJECTION_FEEDBACK_MIN_LENGTH: int = 10
    POPULAR_INTERESTS_SAMPLE: int = 100

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance. Call this everywhere."""
    return Settings()


settings = get_settings()
