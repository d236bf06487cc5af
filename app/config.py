from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    jwt_secret: str = Field("test-jwt-secret", alias="JWT_SECRET")
    jwt_algorithm: str = "HS256"
    api_key: str = Field("test-api-key", alias="API_KEY")

    trusted_proxies: list[str] = Field(
        default_factory=lambda: ["127.0.0.1", "testclient"]
    )
    rate_limit_ip_per_min: int = Field(120, alias="RATE_LIMIT_IP_PER_MIN")
    rate_limit_user_per_min: int = Field(240, alias="RATE_LIMIT_USER_PER_MIN")

    database_url: str = Field("sqlite:////tmp/muscle_ai_test.db", alias="DATABASE_URL")
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")
    sqlite_busy_timeout_s: int = Field(30, alias="SQLITE_BUSY_TIMEOUT_S")

    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")

    usage_reset_window_days: int = Field(
        7,
        alias="USAGE_RESET_WINDOW_DAYS",
        description="How far back a closed billing cycle is still eligible for reset",
    )
    usage_enforce_limit: bool = Field(
        False,
        alias="USAGE_ENFORCE_LIMIT",
        description="Refuse increments that would exceed the plan limit",
    )
    default_analysis_type: str = Field("body_analysis", alias="DEFAULT_ANALYSIS_TYPE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
    )
