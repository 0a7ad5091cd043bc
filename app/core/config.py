import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import FastAPI
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    database_url: str = Field(default="sqlite:///./sprintdesk.db", alias="DATABASE_URL")

    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    access_min: int = Field(default=15, alias="ACCESS_MIN", ge=1)
    refresh_token_days: int = Field(default=7, alias="REFRESH_TOKEN_DAYS", ge=1)

    refresh_cookie_name: str = Field(
        default="sprintdesk_refresh", alias="REFRESH_COOKIE_NAME"
    )
    refresh_cookie_secure: bool = Field(default=False, alias="REFRESH_COOKIE_SECURE")
    refresh_cookie_samesite: str = Field(default="lax", alias="REFRESH_COOKIE_SAMESITE")
    refresh_cookie_domain: str | None = Field(default=None, alias="REFRESH_COOKIE_DOMAIN")
    refresh_cookie_path: str = Field(default="/", alias="REFRESH_COOKIE_PATH")

    google_enabled: bool = Field(default=False, alias="GOOGLE_ENABLED")
    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_timeout_seconds: float = Field(
        default=5.0, alias="GOOGLE_TIMEOUT_SECONDS", gt=0
    )

    otp_minutes: int = Field(default=10, alias="OTP_MINUTES", ge=1)
    otp_code_length: int = Field(default=6, alias="OTP_CODE_LENGTH")
    otp_return_code: bool = Field(default=False, alias="OTP_RETURN_CODE")
    otp_max_attempts: int = Field(default=5, alias="OTP_MAX_ATTEMPTS", ge=1)

    auth_rate_limit: int = Field(default=50, alias="AUTH_RATE_LIMIT")
    auth_rate_window_seconds: int = Field(
        default=900, alias="AUTH_RATE_WINDOW_SECONDS", ge=1
    )
    otp_rate_limit: int = Field(default=10, alias="OTP_RATE_LIMIT")

    demo_enabled: bool = Field(default=True, alias="DEMO_ENABLED")
    demo_seed_on_start: bool = Field(default=True, alias="DEMO_SEED_ON_START")

    app_base_url: str = Field(default="http://localhost:5173", alias="APP_BASE_URL")
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        alias="CORS_ORIGINS",
    )

    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    mail_from: str | None = Field(default=None, alias="MAIL_FROM")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"prod", "production"}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.core.database import SessionLocal
    from app.core.redis import create_redis_client
    from app.services import demo_service
    from app.services.rate_limit_service import RateLimiter
    from app.services.realtime_service import RealtimePublisher

    settings = get_settings()

    redis_client = create_redis_client() if settings.redis_url else None
    app.state.redis = redis_client
    app.state.realtime = RealtimePublisher(redis_client)
    app.state.rate_limiter = RateLimiter(redis_client)

    if settings.demo_enabled and settings.demo_seed_on_start:
        with SessionLocal() as db:
            demo_service.reset_demo_data(db)
        logger.info("Demo data seeded")

    try:
        yield
    finally:
        if redis_client is not None:
            redis_client.close()
