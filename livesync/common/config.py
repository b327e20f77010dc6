"""Client configuration via environment variables.

Uses pydantic-settings to load from .env file and environment variables.
All config is centralized here — modules should import `get_settings()`.
Explicit constructor arguments passed to streams, coordinators and feeds
always take precedence over these values.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─── API ───
    api_base_url: str = "http://localhost:4000/v1"
    request_timeout_seconds: float = 30.0

    # ─── Streams ───
    stream_connect_timeout_seconds: float = 10.0
    stream_base_delay_ms: int = 1000
    stream_max_delay_ms: int = 30000
    stream_max_retries: int | None = None  # None = retry forever
    stream_interval_ms: int = 5000  # server accepts 1000..60000

    # ─── Feeds ───
    poll_interval_ms: int = 15000

    # ─── Session storage ───
    session_file: str | None = None
    session_encryption_key: str | None = None  # Fernet key, secure backend only

    # ─── App ───
    environment: str = "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Uses lru_cache so Settings is only instantiated once.
    In tests, call `get_settings.cache_clear()` to reset.
    """
    return Settings()
