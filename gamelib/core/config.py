"""
Settings for the library sync service.

Values come from the process environment first, then from env files in the
project root: .env.{ENVIRONMENT} overrides .env.

Production refuses to start without:
- DATABASE_URL (anything but the local SQLite default)
- IGDB_CLIENT_ID / IGDB_ACCESS_TOKEN (every sync resolves games through IGDB)

Platform keys (STEAM_API_KEY, RIOT_API_KEY) are optional; a sync for a
platform without its key fails at fetch time with a non-retryable error.
"""
import os
import logging
from pathlib import Path
from typing import List, Literal, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./gamelib.db"
DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]


def env_files(environment: str) -> Tuple[str, ...]:
    """Env files for an environment, lowest precedence first."""
    return (
        str(PROJECT_ROOT / ".env"),
        str(PROJECT_ROOT / f".env.{environment}"),
    )


class Settings(BaseSettings):
    """Service settings; one module-level instance is shared as `settings`."""

    model_config = SettingsConfigDict(
        env_file=env_files(os.getenv("ENVIRONMENT", "development")),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    # Application
    APP_NAME: str = "GameLib Library Sync API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    CORS_ORIGINS_STR: str = ""  # comma-separated

    DATABASE_URL: str = DEFAULT_DATABASE_URL

    # IGDB
    IGDB_CLIENT_ID: str = ""
    IGDB_ACCESS_TOKEN: str = ""
    IGDB_BASE_URL: str = "https://api.igdb.com/v4"
    CATALOG_TIMEOUT: float = 12.0

    # Platforms
    STEAM_API_KEY: str = ""
    RIOT_API_KEY: str = ""
    LIBRARY_FETCH_TIMEOUT: float = 30.0
    WISHLIST_PAGE_TIMEOUT: float = 15.0
    PROBE_TIMEOUT: float = 10.0  # summoner / matchlist probes

    # Matching: IGDB allows ~4 requests/second
    FUZZY_MATCH_ENABLED: bool = True
    FUZZY_MATCH_BATCH_SIZE: int = 4
    FUZZY_MATCH_BATCH_DELAY: float = 0.26
    FUZZY_MATCH_THRESHOLD: float = 0.6

    RECONCILE_BATCH_SIZE: int = 20

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator("FUZZY_MATCH_BATCH_SIZE", "RECONCILE_BATCH_SIZE")
    @classmethod
    def _positive_batch(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch sizes must be at least 1")
        return value

    @field_validator("FUZZY_MATCH_THRESHOLD")
    @classmethod
    def _unit_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("FUZZY_MATCH_THRESHOLD must be within [0, 1]")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown LOG_LEVEL {value!r}")
        return level

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Allowed origins; production gets none unless listed explicitly."""
        origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
        if not origins:
            return [] if self.is_production() else list(DEV_CORS_ORIGINS)
        if self.is_production() and "*" in origins:
            logger.warning("Ignoring CORS_ORIGINS_STR: wildcard origins are not allowed in production")
            return []
        return origins

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> List[str]:
        """
        Names of settings production cannot run without.

        Returns:
            Missing setting names, empty outside production
        """
        if not self.is_production():
            return []

        required = {
            "DATABASE_URL": self.DATABASE_URL != DEFAULT_DATABASE_URL and self.DATABASE_URL,
            "IGDB_CLIENT_ID": self.IGDB_CLIENT_ID,
            "IGDB_ACCESS_TOKEN": self.IGDB_ACCESS_TOKEN,
        }
        return [name for name, value in required.items() if not value]


settings = Settings()

missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    raise ValueError(
        f"Cannot start in production with missing settings: {', '.join(missing_secrets)}. "
        f"Set them in the environment or in .env.production"
    )

if settings.ENVIRONMENT != "test":
    for name in ("STEAM_API_KEY", "RIOT_API_KEY"):
        if not getattr(settings, name):
            logger.info(f"{name} is not set; syncs for that platform will fail")
