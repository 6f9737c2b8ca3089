"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Back-office API (deals, speaker matching, proposal persistence)
    BACKOFFICE_API_URL: str = "http://localhost:3000"
    BACKOFFICE_API_TOKEN: str = ""  # Sent as a bearer token when set
    BACKOFFICE_READ_TIMEOUT: float = 10.0  # deal list / speaker match
    BACKOFFICE_WRITE_TIMEOUT: float = 30.0  # proposal creation
    BACKOFFICE_ASSISTANT_TIMEOUT: float = 60.0  # step assistant (LLM-backed)

    # Proposal defaults
    PROPOSAL_DEFAULT_VALID_DAYS: int = Field(default=30, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
