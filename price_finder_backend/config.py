from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env.local", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    allow_synthetic_data: bool = Field(
        default=False,
        alias="ALLOW_SYNTHETIC_DATA",
        description="Create demo stores when a search finds nothing in range. Keep disabled in production.",
    )
    seed_sample_data: bool = Field(
        default=False,
        alias="SEED_SAMPLE_DATA",
        description="Populate the repository with sample San Francisco stores and 30 days of prices at startup.",
    )
    enable_price_refresh: bool = Field(
        default=True,
        alias="ENABLE_PRICE_REFRESH",
        description="Toggle for the background task that refreshes store prices.",
    )
    price_refresh_sec: int = Field(
        default=24 * 60 * 60,
        alias="PRICE_REFRESH_SEC",
        description="Seconds between price refresh runs.",
    )
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory",
        alias="STORAGE_BACKEND",
        description="Repository implementation to use ('memory' or 'redis').",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL, used when STORAGE_BACKEND=redis.",
    )
    redis_key_prefix: str = Field(
        default="eggs",
        alias="REDIS_KEY_PREFIX",
        description="Namespace prepended to every Redis key.",
    )
    cors_allow_origins: str = Field(
        default="*",
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated list of origins allowed for CORS (use '*' for all).",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
