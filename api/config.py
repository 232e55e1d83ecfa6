"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

# Forecast band multipliers (best/worst case around the prediction)
FORECAST_BAND_WORST = 0.85
FORECAST_BAND_BEST = 1.15


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Storage
    storage_backend: Literal["memory", "redis"] = "memory"
    redis_url: RedisDsn = RedisDsn("redis://localhost:6379/0")
    report_ttl_seconds: int = 60 * 60 * 24 * 90  # 90 days

    # Metric collector
    collector_backend: Literal["http", "fixture"] = "fixture"
    collector_base_url: str = "http://localhost:8080"
    collector_api_key: str | None = None
    collector_timeout_seconds: float = 30.0

    # Job scheduler
    scheduler_max_workers: int = 3
    scheduler_tick_seconds: float = 1.0
    scheduler_max_queue_size: int = 100
    scheduler_estimated_job_seconds: int = 300  # 5 minutes
    scheduler_enabled: bool = True

    # Recurring reports (rq-scheduler)
    recurring_queue_name: str = "seo-reports-low"
    recurring_job_timeout: int = 3600

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"

    @property
    def uses_redis(self) -> bool:
        return self.storage_backend == "redis"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
