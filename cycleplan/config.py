"""Application configuration management."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./data/cycleplan.db",
        description="SQLAlchemy-compatible database URL.",
    )
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000, ge=1, le=65535)

    debug: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("logs"))
    scheduler_minute: int = Field(default=0, ge=0, le=59)
    scheduler_lock_file: Path = Field(default=Path(".scheduler.lock"))
    sweep_concurrency: int = Field(default=4, ge=1, le=64)
    check_in_max_retries: int = Field(default=3, ge=1)

    policy_config_path: Path | None = Field(
        default=None,
        description="Optional YAML file overriding the adjustment policy values.",
    )

    # Plan generation safety ceilings
    max_daily_calorie_goal: float = Field(default=1000.0, gt=0)
    max_generated_daily_hours: float = Field(default=4.0, gt=0)
    hard_daily_ceiling_hours: float = Field(default=4.0, gt=0)

    # Adjustment policy
    max_daily_hours: float = Field(default=3.0, gt=0)
    grace_period_days: int = Field(default=2, ge=0)
    weekly_reset_threshold: int = Field(default=7, ge=1)
    auto_pause_threshold: int = Field(default=3, ge=1)
    edit_unlock_threshold: int = Field(default=5, ge=1)

    # Redistribution engine
    redistribution_cap_ratio: float = Field(default=0.25, gt=0, le=1)
    redistribution_session_cap_hours: float = Field(default=0.75, gt=0)
    redistribution_max_iterations: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        upper = value.upper()
        if upper not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(sorted(valid))}")
        return upper

    @model_validator(mode="after")
    def check_daily_limits(self) -> "Settings":
        """Keep the adjustment limit under the hard per-day ceiling."""

        if self.max_daily_hours > self.hard_daily_ceiling_hours:
            raise ValueError(
                "MAX_DAILY_HOURS cannot exceed HARD_DAILY_CEILING_HOURS "
                f"({self.max_daily_hours} > {self.hard_daily_ceiling_hours})"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance so it can be reused across the app."""

    settings = Settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    return settings
