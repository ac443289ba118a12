"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

CHANGE_FEED_MODES = ("auto", "realtime", "polling")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    environment: str = _ENVIRONMENT
    change_feed_mode: str = "auto"
    machine_poll_seconds: float = 5.0
    recipe_poll_seconds: float = 30.0
    inventory_poll_seconds: float = 10.0
    temperature_throttle_seconds: float = 2.0
    low_stock_threshold: float = 10
    critical_stock_threshold: float = 5
    realtime_probe_timeout_seconds: float = 5.0
    client_public_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_change_feed_mode(raw: str | None) -> str:
    """Normalize the change feed mode; unknown values mean `auto`."""
    if raw is None:
        return "auto"
    cleaned = raw.strip().lower()
    if cleaned in CHANGE_FEED_MODES:
        return cleaned
    return "auto"
