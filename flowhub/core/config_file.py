"""Application configuration loaded from environment variables."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import ConfigDict, computed_field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENV: str = "dev"
    DEBUG: bool = False

    # Database connection components
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "flowhub"
    POSTGRES_PASSWORD: str = "flowhub"
    POSTGRES_DB: str = "flowhub"

    # Allow DATABASE_URL to be set directly, or construct from components
    DATABASE_URL: str | None = None

    @computed_field  # type: ignore[misc]
    @property
    def database_url(self) -> str:
        """Get database URL, either from DATABASE_URL env var or construct from components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        encoded_user = quote_plus(str(self.POSTGRES_USER), safe="")
        encoded_password = quote_plus(str(self.POSTGRES_PASSWORD), safe="")
        encoded_host = quote_plus(str(self.POSTGRES_HOST), safe="")
        encoded_db = quote_plus(str(self.POSTGRES_DB), safe="")
        return (
            f"postgresql+psycopg2://{encoded_user}:{encoded_password}"
            f"@{encoded_host}:{self.POSTGRES_PORT}/{encoded_db}"
        )

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: str = ""

    # Job queue
    JOB_QUEUE_BACKEND: str = "memory"  # "memory" or "redis"
    JOB_QUEUE_KEY: str = "flowhub:jobs"
    WORKER_POLL_INTERVAL: float = 1.0  # Seconds between queue scans
    WORKER_BATCH_SIZE: int = 20

    # Job budgets
    EXECUTE_JOB_TIMEOUT: int = 300
    EXECUTE_JOB_TRIES: int = 3
    POLL_JOB_TIMEOUT: int = 60
    POLL_JOB_TRIES: int = 2

    # Triggers
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    DEFAULT_POLLING_INTERVAL: int = 300
    PENDING_EVENT_GRACE_SECONDS: int = 600

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "human"  # "human" for dev, "json" for prod

    model_config = ConfigDict(
        env_file=[".env", "../.env"],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
