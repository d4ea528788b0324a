from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Postgres settings
    DATABASE_URL: str = "postgresql://localhost:5432/gigvora"

    # =================================================================
    # DATABASE POOL SETTINGS - Simple and configurable
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # PROFILE ENGAGEMENT QUEUE
    # =================================================================
    ENGAGEMENT_POLL_INTERVAL_SECONDS: float = 30.0
    ENGAGEMENT_BATCH_SIZE: int = 10
    ENGAGEMENT_LOCK_TIMEOUT_SECONDS: int = 120
    ENGAGEMENT_MAX_ATTEMPTS: int = 5
    ENGAGEMENT_BACKOFF_BASE_SECONDS: int = 30
    ENGAGEMENT_BACKOFF_MAX_SECONDS: int = 300
    ENGAGEMENT_STALE_AFTER_MINUTES: int = 30
    ENGAGEMENT_WORKER_ID: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_test_environment(self) -> bool:
        return self.environment.strip().lower() in {"test", "testing", "ephemeral"}

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 2,
                    "max_size": 6,
                    "timeout": 15.0,
                }
            )

        return config

    def get_engagement_queue_config(self) -> dict:
        """Queue knobs in one place so the worker can log what it runs with."""
        return {
            "poll_interval_seconds": self.ENGAGEMENT_POLL_INTERVAL_SECONDS,
            "batch_size": self.ENGAGEMENT_BATCH_SIZE,
            "lock_timeout_seconds": self.ENGAGEMENT_LOCK_TIMEOUT_SECONDS,
            "max_attempts": self.ENGAGEMENT_MAX_ATTEMPTS,
            "backoff_base_seconds": self.ENGAGEMENT_BACKOFF_BASE_SECONDS,
            "backoff_max_seconds": self.ENGAGEMENT_BACKOFF_MAX_SECONDS,
            "stale_after_minutes": self.ENGAGEMENT_STALE_AFTER_MINUTES,
        }


settings = Settings()
