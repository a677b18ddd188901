"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str
    SQL_ECHO: bool = False

    # football-data.org (v4)
    FOOTBALL_DATA_API_KEY: str = ""
    FOOTBALL_DATA_BASE_URL: str = "https://api.football-data.org/v4"
    FOOTBALL_DATA_TIMEOUT_SECONDS: float = 30.0

    # Rate Limiting (free tier: 10 r/m)
    API_REQUESTS_PER_MINUTE: int = 10
    INTER_COMPETITION_DELAY_SECONDS: float = 1.0
    RATE_LIMIT_PER_MINUTE: str = "60/minute"

    # Sync
    SYNC_COMPETITIONS: str = "premier_league,champions_league"
    RESULTS_LOOKBACK_DAYS: int = 7

    # Gameweek timing
    DEADLINE_OFFSET_MINUTES: int = 60  # Predictions close this long before first kickoff
    MATCH_DURATION_ESTIMATE_MINUTES: int = 120  # Last kickoff + this = estimated end

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    FULL_SYNC_HOUR_UTC: int = 5
    FULL_SYNC_MINUTE_UTC: int = 30
    RESULTS_REFRESH_INTERVAL_MINUTES: int = 15

    # API Security
    API_KEY: str = ""  # Optional API key for admin endpoints
    API_KEY_HEADER: str = "X-API-Key"
    METRICS_BEARER_TOKEN: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    # Sentry (disabled when DSN is empty)
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def sync_competitions(self) -> list[str]:
        """Competition keys synced by the scheduler and sync-all."""
        return [c.strip() for c in self.SYNC_COMPETITIONS.split(",") if c.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
