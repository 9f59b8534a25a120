"""Centralised configuration handling for the subscription analytics engine."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_TTL_SECONDS = 300


class Settings(BaseSettings):
    """Engine settings sourced from ``SUBSCRIPTION_ANALYTICS_*`` env vars."""

    cache_ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, gt=0)
    forecast_months: int = Field(default=6, ge=1)
    trial_ending_days: int = Field(default=7, ge=0)
    price_increase_days: int = Field(default=30, ge=0)
    upcoming_renewal_days: int = Field(default=7, ge=0)
    due_soon_days: int = Field(default=3, ge=0)
    max_renewal_steps: int = Field(default=10_000, ge=1)

    model_config = SettingsConfigDict(env_prefix="SUBSCRIPTION_ANALYTICS_", extra="ignore")

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    """Load and cache engine settings."""

    return Settings()
