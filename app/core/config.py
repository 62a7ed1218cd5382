from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Database
    db_path: str = "/data/coaching.db"

    # Public URLs
    public_base_url: str = "http://localhost:8000"
    site_url: str = "http://localhost:5173"

    # Caller tokens and OAuth state signing
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    oauth_state_ttl_minutes: int = 10

    # Calendar sync
    event_timezone: str = "Europe/Paris"
    http_timeout: float = 30.0
    scheduled_sync_enabled: bool = False
    sync_hour: int = 5

    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
