"""Application configuration via pydantic-settings."""

from datetime import datetime, timezone
from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Settings
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS - comma-separated origins (env var: CORS_ORIGINS)
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Upstream game API
    tacticus_api_url: str = "https://api.tacticusgame.com/api/v1"
    request_timeout: float = 15.0

    # Database path (DuckDB file holding registered API tokens)
    database_path: str = "data/raid_analytics.duckdb"

    # Season calendar: season 85 started 2025-10-08 10:00 UTC, seasons last 14 days
    season_anchor: int = 85
    season_anchor_start: datetime = datetime(2025, 10, 8, 10, 0, 0, tzinfo=timezone.utc)
    season_length_days: int = 14
    minimum_season: int = 70

    # Estimator assumptions. The upstream API never reports a live balance, so
    # every player is assumed to hold this many tokens at their first observed spend.
    assumed_initial_tokens: int = 2
    # Hard cap on used + available tokens in one season (guards against refunds)
    maximum_tokens_per_season: int = 29
    maximum_guild_members: int = 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
