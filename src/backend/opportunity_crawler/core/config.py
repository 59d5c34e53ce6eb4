"""
Crawler settings, read from the environment and an optional .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "OpportunityCrawlerBot/1.0 (+https://opportunity-crawler.local/bot) "
    "Mozilla/5.0 (compatible; OpportunityCrawlerBot/1.0)"
)


class Settings(BaseSettings):
    """
    Every knob of the crawler and its HTTP surface.

    Field names map to upper-case environment variables (CRON_SECRET, ...).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Opportunity Discovery Crawler"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False, description="Enable debug mode")

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)"
    )
    cron_secret: str | None = Field(
        default=None,
        description="Shared secret expected in the x-cron-secret header of cron triggers"
    )

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    # Database - PostgreSQL
    database_url: PostgresDsn | None = Field(
        default=None,
        description="PostgreSQL connection string"
    )
    database_pool_size: int = Field(default=5, ge=1, le=100)
    database_max_overflow: int = Field(default=10, ge=0, le=100)
    database_pool_timeout: int = Field(default=30, ge=5, le=120)
    database_echo: bool = Field(default=False, description="Echo SQL queries")

    # Crawler Settings - Fetching
    crawler_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent identifying the bot, with a contact URL"
    )
    crawler_timeout_ms: int = Field(
        default=20_000,
        ge=1_000,
        le=120_000,
        description="Hard timeout for a single page fetch (milliseconds)"
    )
    crawler_max_response_bytes: int = Field(
        default=450_000,
        ge=1_024,
        description="Responses larger than this are rejected without being buffered"
    )

    # Crawler Settings - Politeness
    crawler_backoff_base_ms: int = Field(default=1_500, ge=0)
    crawler_backoff_max_ms: int = Field(default=60_000, ge=0)
    crawler_block_penalty_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to a host's remaining penalty when a fetch is blocked"
    )
    crawler_robots_ttl_seconds: int = Field(
        default=6 * 60 * 60,
        ge=0,
        description="How long a parsed robots.txt is trusted"
    )

    # Discover
    discover_initial_freshness: int = Field(default=80, ge=0, le=100)

    # Verify
    verify_default_limit: int = Field(default=25, ge=1)
    verify_max_limit: int = Field(default=200, ge=1)
    verify_min_delay_ms: int = Field(default=900, ge=0)
    verify_respect_robots: bool = False

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Ensure database URL uses asyncpg driver."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
