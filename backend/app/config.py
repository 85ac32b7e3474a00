from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LeaderboardSettings(BaseSettings):
    daily_step_goal: int = Field(default=10_000, ge=1)
    miles_per_step: float = Field(default=0.0005, gt=0)
    momentum_threshold_percent: float = Field(default=5.0, ge=0)
    min_consistency_days: int = Field(default=3, ge=1)
    min_champion_days: int = Field(default=7, ge=1)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    # Comma separated, e.g. CORS_ORIGINS=http://localhost:3000,https://steps.example.org
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> LeaderboardSettings:
    return LeaderboardSettings()
