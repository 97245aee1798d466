"""Application configuration."""

import os
from uuid import UUID

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    cron_secret: str
    cron_user_ids: str | None = None
    dedup_window_days: int = 30
    usage_retention_days: int = 90
    fetch_timeout_seconds: float = 10.0
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3
    max_concurrent_subjects: int = 8
    candidate_pool_size: int = 200
    pool_cache_ttl_seconds: int = 900
    condition_rules_path: str | None = None
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_user_ids(raw: str | None) -> set[UUID] | None:
    """Parse the cron user allowlist; None means every user."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    ids: set[UUID] = set()
    for chunk in cleaned.split(","):
        value = chunk.strip()
        if not value:
            continue
        try:
            ids.add(UUID(value))
        except ValueError:
            continue
    return ids or None
