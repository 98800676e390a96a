"""
Configuration settings for the Fantasy Lineup Data Service.
Supports testing, development, and production environments.
"""

import os
from datetime import datetime
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


def detect_default_season(today: Optional[datetime] = None) -> str:
    """
    Resolve the NFL season year for a date.

    The NFL season runs August through early February, so January to June
    still belongs to the previous year's season.

    Args:
        today: Date to resolve (default: now)

    Returns:
        Season year as a string
    """
    today = today or datetime.now()
    if today.month <= 6:
        return str(today.year - 1)
    return str(today.year)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings(BaseSettings):
    """
    Application settings with environment-aware configuration.

    Supports three modes:
    - TEST: fixture-friendly defaults, no offline snapshot writes
    - DEVELOPMENT: verbose logging, ESPN fixture data
    - PRODUCTION: live upstream calls
    """

    # Environment mode: TEST, DEVELOPMENT, or PRODUCTION
    MODE: str = os.getenv("MODE", "DEVELOPMENT").upper()
    DEBUG: bool = _env_bool("DEBUG", "false")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Sleeper API settings
    SLEEPER_BASE_URL: str = os.getenv("SLEEPER_BASE_URL", "https://api.sleeper.app/v1")
    SLEEPER_STATS_BASE_URL: str = os.getenv("SLEEPER_STATS_BASE_URL", "https://api.sleeper.com")
    SLEEPER_RATE_LIMIT: int = int(os.getenv("SLEEPER_RATE_LIMIT", "1000"))

    # Retry / transport settings
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    BACKOFF_BASE_SECONDS: float = float(os.getenv("BACKOFF_BASE_SECONDS", "1.0"))
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Cache durations (in seconds)
    PLAYER_CACHE_TTL: int = int(os.getenv("PLAYER_CACHE_TTL", str(24 * 60 * 60)))
    LEAGUE_CACHE_TTL: int = int(os.getenv("LEAGUE_CACHE_TTL", str(5 * 60)))
    PROJECTIONS_CACHE_TTL: int = int(os.getenv("PROJECTIONS_CACHE_TTL", str(30 * 60)))

    # Offline player snapshot
    ENABLE_OFFLINE_MODE: bool = _env_bool("ENABLE_OFFLINE_MODE", "true")
    SNAPSHOT_DIR: str = os.getenv("SNAPSHOT_DIR", "data/snapshots")
    SNAPSHOT_MAX_PLAYERS: int = int(os.getenv("SNAPSHOT_MAX_PLAYERS", "100"))

    # League defaults
    DEFAULT_SPORT: str = os.getenv("DEFAULT_SPORT", "nfl")
    DEFAULT_SEASON: str = os.getenv("DEFAULT_SEASON") or detect_default_season()
    REGULAR_SEASON_WEEKS: int = int(os.getenv("REGULAR_SEASON_WEEKS", "18"))
    MAX_PLAYERS_DISPLAY: int = int(os.getenv("MAX_PLAYERS_DISPLAY", "50"))

    # ESPN (secondary platform, fixture data unless a proxy is available)
    ESPN_BASE_URL: str = os.getenv(
        "ESPN_BASE_URL", "https://fantasy.espn.com/apis/v3/games/ffl"
    )
    ESPN_RATE_LIMIT: int = int(os.getenv("ESPN_RATE_LIMIT", "100"))
    ESPN_USE_FIXTURES: bool = _env_bool("ESPN_USE_FIXTURES", "true")

    class Config:
        """Pydantic configuration."""
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.MODE == "TEST"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.MODE == "DEVELOPMENT"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.MODE == "PRODUCTION"


# Global settings instance
settings = Settings()
