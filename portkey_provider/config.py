"""Configuration settings for the Portkey provider gateway."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``PORTKEY_*`` environment variables or ``.env``.

    - PORTKEY_API_KEY: gateway API key, sent as ``x-portkey-api-key``
    - PORTKEY_PROVIDER / PORTKEY_VIRTUAL_KEY / PORTKEY_CONFIG: routing headers
    - PORTKEY_CUSTOM_HEADERS: JSON object merged into every request
    """

    # Gateway
    api_key: str | None = None
    base_url: str = "https://api.portkey.ai/v1"
    provider: str | None = None
    virtual_key: str | None = None
    config: str | None = None
    custom_headers: dict[str, str] = {}

    # Transport
    timeout_seconds: float = 60.0
    max_retries: int = 2

    # Server
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PORTKEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
