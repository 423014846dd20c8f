from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./creatorhub.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Messaging limits
    MAX_BODY_LENGTH: int = 5000
    MAX_SUBJECT_LENGTH: int = 200

    # Client polling intervals, in seconds
    THREAD_POLL_SECONDS: int = 5
    UNREAD_POLL_SECONDS: int = 30


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
