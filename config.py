from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    db_path: str = Field(default="contacts.db", alias="BITESPEED_DB_PATH")
    # seconds a unit of work waits for the sqlite write lock
    busy_timeout_seconds: float = Field(default=5.0, alias="BITESPEED_BUSY_TIMEOUT")

    host: str = Field(default="0.0.0.0", alias="BITESPEED_HOST")
    port: int = Field(default=8000, alias="BITESPEED_PORT")

    log_level: str = Field(default="INFO", alias="BITESPEED_LOG_LEVEL")


settings = Settings()
