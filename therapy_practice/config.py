"""Application configuration module."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database settings
    DATABASE_URL: str = "sqlite:///./therapy_practice.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    AUTO_CREATE_SCHEMA: bool = True

    # API settings
    PROJECT_NAME: str = "Therapy Practice Assessments"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Assessment settings
    SHARE_TOKEN_BYTES: int = 32
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100


# Create global settings instance
settings = Settings()
