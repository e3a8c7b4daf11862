from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APPLYTRACK_", env_file=".env", extra="ignore")

    app_name: str = "applytrack"
    env: str = "dev"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Cache TTLs (seconds)
    default_ttl: float = 120.0
    applications_ttl: float = 300.0
    resumes_ttl: float = 600.0
    cover_letters_ttl: float = 600.0
    settings_ttl: float = 900.0
    targets_ttl: float = 300.0
    today_target_ttl: float = 60.0
    schedules_ttl: float = 900.0
    stream_ttl: float = 120.0

    # Stale-while-revalidate window opens at ttl * stale_ratio (None disables)
    stale_ratio: float | None = Field(default=0.8, gt=0.0, lt=1.0)

    # Store bounds and maintenance
    max_entries: int = Field(default=1000, ge=1)
    cleanup_interval: float = Field(default=300.0, gt=0)

    # Pagination
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Metrics
    enable_metrics: bool = True


settings = Settings()
