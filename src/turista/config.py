"""Application configuration."""

import os
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    service_fee_rate: Decimal = Decimal("0.12")
    conflict_max_attempts: int = 3
    conflict_retry_delay_seconds: float = 0.05
    allow_cancel_after_date: bool = True
    business_timezone: str = "UTC"
    conversation_list_limit: int = 50
    realtime_queue_size: int = 256
    cors_allowed_origins: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Parse comma separated CORS origins from env."""
    if raw is None:
        return []
    cleaned = raw.strip()
    if cleaned == "*":
        return ["*"]
    return [chunk.strip() for chunk in cleaned.split(",") if chunk.strip()]


def business_today(timezone: str) -> date:
    """Return the current calendar date in the business timezone."""
    return datetime.now(tz=ZoneInfo(timezone)).date()
