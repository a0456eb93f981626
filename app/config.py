"""Application settings loaded from environment variables and .env."""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the chat backend.

    Field names are upper-case so they read the same as the environment
    variables that set them (e.g. OPENAI_MODEL).
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Chat Completion API"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./chat.db"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_ORGANIZATION_ID: Optional[str] = None
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TIMEOUT: float = Field(default=30.0, gt=0)
    OPENAI_MAX_RETRIES: int = Field(default=5, ge=0)
    OPENAI_INITIAL_DELAY_MS: int = Field(default=1000, gt=0)

    # Auth
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "auth_token"

    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Keep the user's message in history when the model never answered it
    KEEP_UNANSWERED_MESSAGES: bool = False

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Reject names the logging module does not know."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("OPENAI_API_KEY", "OPENAI_ORGANIZATION_ID")
    @classmethod
    def strip_credentials(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @property
    def cors_origins(self) -> list[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
