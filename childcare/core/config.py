# childcare/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

AppEnv = Literal["production", "development", "legacy"]


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env) in production:
      - APP_ENV=production
      - DATABASE_URL (Postgres connection string)
      - SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY (image bucket)
      - FIREBASE_SERVICE_ACCOUNT_JSON (service account, raw JSON)

    In development the image bucket falls back to an in-memory store
    when Supabase is not configured.
    """

    PROJECT_NAME: str = "Little Einstein Childcare API"
    API_V1_STR: str = "/api"

    # production | development | legacy (legacy is refused at startup)
    APP_ENV: AppEnv = "development"

    # Table store
    DATABASE_URL: str = "sqlite:///./childcare.db"

    # Blob store (Supabase Storage)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "images"

    # Firebase Admin SDK
    FIREBASE_SERVICE_ACCOUNT_JSON: str | None = None
    SYNC_ADMIN_CLAIMS_ON_STARTUP: bool = False

    # Frontend origins allowed by CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # Policy limits
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
    MAX_USER_IMAGES: int = 3
    BANNER_MAX_HOURS: int = 72

    # 0 disables the periodic sweep (startup sweep still runs)
    DELETION_SWEEP_INTERVAL_SECONDS: int = 0

    # Invitation e-mails (SMTP)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "Little Einstein Childcare"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SIGNUP_URL: str = "https://littleeinsteinchildcare.org/signup"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("MAX_IMAGE_BYTES", "MAX_USER_IMAGES", "BANNER_MAX_HOURS")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("DELETION_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be 0 (disabled) or a positive number of seconds")
        return v

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
