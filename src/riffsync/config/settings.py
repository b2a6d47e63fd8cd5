"""Application settings using pydantic-settings.

Every value can be overridden from the environment with the ``RIFFSYNC_``
prefix; nested groups use ``__`` as delimiter, e.g.
``RIFFSYNC_SYNC__INTER_TRACK_DELAY_SECONDS=3``.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    BeforeValidator(lambda v: v.upper() if isinstance(v, str) else v),
]


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///./riffsync.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True)
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800, ge=-1)


class ContentFetchSettings(BaseModel):
    """Primary content-fetch gateway (debrid provider) settings."""

    base_url: str = Field(
        default="",
        description="Gateway endpoint accepting search/selectFiles actions",
    )
    timeout: float = Field(default=60.0, gt=0)
    max_requests_per_second: float = Field(default=1.0, gt=0)
    burst: int = Field(default=2, ge=1)


class MediaSearchSettings(BaseModel):
    """Secondary media-search provider (Piped API) settings."""

    instances: list[str] = Field(
        default_factory=lambda: [
            "https://pipedapi.kavin.rocks",
            "https://api.piped.private.coffee",
            "https://pipedapi.r4fo.com",
        ],
        description="Piped API instances, tried in order",
    )
    timeout: float = Field(default=12.0, gt=0)
    max_duration_seconds: int = Field(default=900, gt=0)
    max_results: int = Field(default=5, ge=1)


class SyncSettings(BaseModel):
    """Album sync policy."""

    inter_track_delay_seconds: float = Field(default=2.0, ge=0)
    pacing: Literal["fixed", "token_bucket"] = Field(
        default="fixed",
        description="Backpressure between tracks: a fixed delay, or a token bucket "
        "refilled at one track per inter_track_delay_seconds",
    )
    pacing_burst: int = Field(
        default=1, ge=1, description="Tracks allowed back to back under token_bucket pacing"
    )
    poll_interval_seconds: float = Field(default=1.5, gt=0)
    poll_max_wait_seconds: float = Field(default=30.0, gt=0)
    stall_timeout_seconds: float = Field(default=10.0, gt=0)
    bundle_coverage_ratio: float = Field(default=0.5, ge=0, le=1)
    fallback_enabled: bool = Field(
        default=True, description="Try the secondary media-search provider"
    )


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="RIFFSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="riffsync")
    log_level: LogLevel = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    content_fetch: ContentFetchSettings = Field(default_factory=ContentFetchSettings)
    media_search: MediaSearchSettings = Field(default_factory=MediaSearchSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
