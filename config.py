from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a local .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    DB_NAME: str = Field(default="contacts.db", description="SQLite database path")
    DB_BUSY_TIMEOUT: float = Field(
        default=5.0,
        description="Seconds to wait for the database write lock"
    )

    LOG_LEVEL: str = Field(default="INFO")

    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
