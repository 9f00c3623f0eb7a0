"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Values come from environment variables or a ``.env`` file; invalid values
fail fast at startup.

CHANGELOG:
- 2026-10-16: Add scheduler and notification relay settings
- 2026-10-15: Initial creation

TODO:
- None
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """Configuration for the meter billing API and scheduler.

    Attributes:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://...).
        redis_url: Redis URL for the latest-reading cache.
        cache_ttl_s: TTL of the cached latest reading in seconds.
        rate_per_kwh: Default electricity rate, overridable per request.
        local_utc_offset_hours: Fixed offset of the local day frame.
        max_readings_per_query: Row cap for raw reading listings.
        store_timeout_s: Timeout applied to every store query.
        scheduler_enabled: Start the peak and rollup loops with the API.
        peak_check_interval_s: Seconds between peak checks.
        daily_rollup_hour: Local hour at which yesterday's rollup runs.
        notify_webhook_url: Optional URL receiving notification events.
        health_path: Scheduler health file path.
    """

    database_url: str
    redis_url: str
    cache_ttl_s: int = 5
    rate_per_kwh: float = 4.4
    local_utc_offset_hours: int = 7
    max_readings_per_query: int = 10000
    store_timeout_s: float = 10.0
    scheduler_enabled: bool = True
    peak_check_interval_s: int = 10
    daily_rollup_hour: int = 1
    notify_webhook_url: str = ""
    health_path: str = "/data/scheduler-health.json"

    @field_validator("cache_ttl_s", "peak_check_interval_s", "max_readings_per_query")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Reject zero or negative intervals and limits."""
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("rate_per_kwh")
    @classmethod
    def rate_must_be_non_negative(cls, v: float) -> float:
        """Validate the default rate is not negative."""
        if v < 0:
            raise ValueError("RATE_PER_KWH must be >= 0")
        return v

    @field_validator("store_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        """Validate the store timeout is strictly positive."""
        if v <= 0:
            raise ValueError("STORE_TIMEOUT_S must be > 0")
        return v

    @field_validator("local_utc_offset_hours")
    @classmethod
    def offset_must_be_valid(cls, v: int) -> int:
        """Validate the local frame offset is a real UTC offset."""
        if v < -12 or v > 14:
            raise ValueError("LOCAL_UTC_OFFSET_HOURS must be between -12 and 14")
        return v

    @field_validator("daily_rollup_hour")
    @classmethod
    def rollup_hour_must_be_valid(cls, v: int) -> int:
        """Validate the rollup hour is an hour of day."""
        if v < 0 or v > 23:
            raise ValueError("DAILY_ROLLUP_HOUR must be between 0 and 23")
        return v

    @field_validator("notify_webhook_url")
    @classmethod
    def webhook_must_be_http(cls, v: str) -> str:
        """Validate the relay URL scheme when one is configured."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("NOTIFY_WEBHOOK_URL must be an http(s) URL")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    return AppSettings()
