"""
Application configuration with environment-specific settings.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Only the entrypoints (``loterias.main`` and ``run_scheduler.py``) read the
module-level ``settings``; services receive their configuration through
their constructors.
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Loterias Caixa API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Caixa upstream API
    CAIXA_API_BASE: str = "https://servicebus2.caixa.gov.br/portaldeloterias/api"
    FETCH_TIMEOUT: float = 30.0  # seconds per request
    FETCH_CONCURRENCY: int = 20  # in-flight requests per pass

    # Synchronization
    CONTESTS_TO_STORE: int = 500
    SYNC_PASS_TIMEOUT: float = 900.0  # 15 minutes per pass
    BOOTSTRAP_ON_STARTUP: bool = True

    # Durable store
    DB_PATH: str = str(PROJECT_ROOT / "db.json")
    SNAPSHOT_PATH: str = str(PROJECT_ROOT / "loterias.json")
    SNAPSHOT_ENABLED: bool = True

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "America/Sao_Paulo"
    SYNC_CRON_HOUR: int = 21
    SYNC_CRON_MINUTE: int = 0
    MISFIRE_GRACE_TIME: int = 60  # seconds; missed days are not caught up

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = "*"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE: str = "memory"  # "memory" or "redis"
    REDIS_URL: Optional[str] = None  # Required if using Redis storage

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins; the public results API accepts any origin by default."""
        origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
        return origins or ["*"]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    def validate_settings(self) -> list[str]:
        """
        Validate settings that would make the service misbehave.

        Returns:
            List of problems found (empty if all good)
        """
        problems = []

        if self.CONTESTS_TO_STORE < 1:
            problems.append("CONTESTS_TO_STORE must be >= 1")

        if self.FETCH_CONCURRENCY < 1:
            problems.append("FETCH_CONCURRENCY must be >= 1")

        if not (0 <= self.SYNC_CRON_HOUR <= 23) or not (0 <= self.SYNC_CRON_MINUTE <= 59):
            problems.append("SYNC_CRON_HOUR/SYNC_CRON_MINUTE out of range")

        # Redis URL is required if using Redis rate limiting
        if self.RATE_LIMIT_ENABLED and self.RATE_LIMIT_STORAGE == "redis" and not self.REDIS_URL:
            problems.append("REDIS_URL")

        return problems


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    # Try environment-specific file first
    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    # Fall back to default .env
    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


# Auto-detect and load environment file
_env_file = _load_env_file()


# Create settings instance with auto-detected env file
class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate settings on startup
setting_problems = settings.validate_settings()
if setting_problems:
    logger.warning(f"Invalid settings for {settings.ENVIRONMENT}: {', '.join(setting_problems)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with invalid settings: {', '.join(setting_problems)}"
        )
