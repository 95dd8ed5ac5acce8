import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from platebot.datasource.vehicle import (
    DEFAULT_BASE_URL,
    DISABILITY_RESOURCE_ID,
    VEHICLE_RESOURCE_ID,
)

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Telegram Bot Configuration
    telegram_bot_token: str = Field(default="", alias="TELEGRAM_BOT_TOKEN")

    # Rate Limit Configuration
    rate_limit_window_ms: int = Field(default=60_000, alias="RATE_LIMIT_WINDOW_MS", gt=0)
    rate_limit_max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS", gt=0)

    # Lookup API Configuration
    lookup_base_url: str = Field(default=DEFAULT_BASE_URL, alias="LOOKUP_BASE_URL")
    vehicle_resource_id: str = Field(default=VEHICLE_RESOURCE_ID, alias="VEHICLE_RESOURCE_ID")
    disability_resource_id: str = Field(
        default=DISABILITY_RESOURCE_ID, alias="DISABILITY_RESOURCE_ID"
    )
    api_timeout_ms: int = Field(default=5_000, alias="API_TIMEOUT", gt=0)
    api_retry_attempts: int = Field(default=3, alias="API_RETRY_ATTEMPTS", ge=1)
    api_retry_delay_ms: int = Field(default=1_000, alias="API_RETRY_DELAY_MS", ge=0)

    # Cache Configuration
    cache_ttl_ms: int = Field(default=300_000, alias="CACHE_TTL_MS", gt=0)
    cache_max_size: int = Field(default=500, alias="CACHE_MAX_SIZE", gt=0)
    cache_cleanup_interval_ms: int = Field(
        default=60_000, alias="CACHE_CLEANUP_INTERVAL_MS", gt=0
    )

    # Runtime
    stats_interval_seconds: int = Field(default=60, alias="STATS_INTERVAL_SECONDS", gt=0)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(milliseconds=self.rate_limit_window_ms)

    @property
    def api_timeout_seconds(self) -> float:
        return self.api_timeout_ms / 1000

    @property
    def api_retry_delay(self) -> timedelta:
        return timedelta(milliseconds=self.api_retry_delay_ms)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(milliseconds=self.cache_ttl_ms)

    @property
    def cache_cleanup_interval(self) -> timedelta:
        return timedelta(milliseconds=self.cache_cleanup_interval_ms)


def load_settings() -> Settings:
    """Read settings from the process environment (and .env)."""
    return Settings.model_validate(dict(os.environ))


global_settings = load_settings()
