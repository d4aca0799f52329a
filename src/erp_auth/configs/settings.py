from __future__ import annotations

from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration.

    - Values loaded from `.env`
    - Comma-separated lists for multi-value settings like CORS_ORIGINS
    """

    # ----------------------------
    # Service
    # ----------------------------
    SERVICE_NAME: str = "erp-auth-service"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ----------------------------
    # Mongo
    # ----------------------------
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "erp"
    users_collection: str = "users"
    companies_collection: str = "companies"

    # ----------------------------
    # Redis
    # ----------------------------
    redis_url: str = "redis://localhost:6379/0"

    # ----------------------------
    # CORS
    # ----------------------------
    # store as raw string list from env; we will normalize in code
    CORS_ORIGINS: Any = Field(default_factory=list)

    # ----------------------------
    # JWT
    # ----------------------------
    jwt_alg: str = "HS256"
    jwt_secret: str = "change-me"
    jwt_issuer: str | None = "ERPSolutions"
    jwt_audience: str | None = "ERPSolutions-App"
    jwt_expires_seconds: int = 10 * 24 * 60 * 60  # 10 days
    clock_skew_seconds: int = 0

    # ----------------------------
    # Session cache
    # ----------------------------
    session_cache_backend: Literal["memory", "redis"] = "memory"
    session_cache_enabled: bool = True
    session_cache_ttl_seconds: int = 300  # 5 minutes
    session_cache_sweep_seconds: int = 300
    session_cache_prefix: str = "erp:session:"

    # ----------------------------
    # Principal validation
    # ----------------------------
    require_confirmed_user: bool = True
    allow_pending_users: bool = False

    # ----------------------------
    # Tenant context
    # ----------------------------
    company_header_name: str = "x-company-id"
    company_param_name: str = "companyId"

    # Pydantic settings config (v2 style)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
