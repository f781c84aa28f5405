"""
Library configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # OpenAI (generation collaborator)
    openai_api_key: str = ""
    grading_model: str = "gpt-4o"
    generation_temperature: float = 0.2

    # Grading retry/fallback
    grading_max_attempts: int = 3
    grading_retry_delay_seconds: float = 1.0  # multiplied by attempt number
    generation_timeout_seconds: float = 60.0  # per generation call


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
