"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SECTORVIEW_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "SectorView API"
    app_version: str = "1.0.0"
    debug: bool = Field(
        default=False, description="Enable debug mode (disable in production)"
    )
    environment: str = Field(
        default="production",
        description="Environment: development, staging, production",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sectorview.db",
        description="Database URL (SQLite for local use, PostgreSQL for deployments)",
    )
    db_pool_min_size: int = Field(
        default=5, ge=1, le=20, description="Minimum database pool connections"
    )
    db_pool_max_size: int = Field(
        default=20, ge=5, le=100, description="Maximum database pool connections"
    )

    # CORS
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:1420", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Refresh orchestration
    refresh_workers: int = Field(
        default=8, ge=1, le=64, description="Concurrent market data fetches"
    )
    fetch_max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries after a rate-limited fetch"
    )
    fetch_backoff_base: float = Field(
        default=1.0, ge=0, description="Initial backoff delay in seconds"
    )
    fetch_backoff_max: float = Field(
        default=30.0, ge=0, description="Backoff delay cap in seconds"
    )
    fetch_timeout: int = Field(
        default=30, ge=5, le=120, description="External API timeout in seconds"
    )
    discovery_enabled: bool = Field(
        default=True, description="Reconcile universe membership before a full refresh"
    )

    # Outlier detection
    primary_outlier_threshold: float = Field(
        default=1.5, ge=0, description="Default composite threshold for the S&P 500"
    )
    secondary_outlier_threshold: float = Field(
        default=2.0, ge=0, description="Default composite threshold for the Russell 2000"
    )

    # Caching
    sector_cache_ttl: int = Field(
        default=15 * 60, ge=0, description="Sector summary cache TTL in seconds"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("fetch_backoff_max")
    @classmethod
    def validate_backoff_cap(cls, v: float, info) -> float:
        base = info.data.get("fetch_backoff_base", 0.0)
        if v < base:
            raise ValueError("fetch_backoff_max must be >= fetch_backoff_base")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
