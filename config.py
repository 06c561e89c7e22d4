"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Library
    library_key: str = "lnTracker.library"

    # Store backend: "sql", "redis" or "memory"
    store_backend: str = "sql"

    # Database
    database_url: str = "sqlite+aiosqlite:///./ln_tracker.db"
    database_echo: bool = False

    # Redis
    redis_url: Optional[str] = "redis://localhost:6379/0"
    redis_namespace: str = "lntracker:"

    # Secondary page fetch
    fetch_timeout_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
