"""Application configuration."""
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

PACKAGE_DATA_PATH = Path(__file__).resolve().parents[1] / "data"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = Field(default="clearpath-relief", validation_alias="APP_NAME")
    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    api_prefix: str = Field(default="/api/v1", validation_alias="API_PREFIX")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    data_base_path: Path = Field(default=PACKAGE_DATA_PATH, validation_alias="DATA_BASE_PATH")
    default_jurisdiction: str = Field(default="dc", validation_alias="DEFAULT_JURISDICTION")

    cache_salt: str = Field(default="clearpath-cache-salt", validation_alias="CACHE_SALT")
    cache_ttl_minutes: int = Field(default=30, ge=1, validation_alias="CACHE_TTL_MINUTES")
    cache_max_size: int = Field(default=100, ge=1, validation_alias="CACHE_MAX_SIZE")
    cache_bucket_minutes: int = Field(default=5, ge=1, validation_alias="CACHE_BUCKET_MINUTES")

    max_field_length: int = Field(default=1000, ge=1, validation_alias="MAX_FIELD_LENGTH")
    event_log_capacity: int = Field(default=500, ge=1, validation_alias="EVENT_LOG_CAPACITY")

    class Config:
        env_prefix = ""
        env_file = ".env"
        env_file_encoding = "utf-8"


class DataPaths(BaseModel):
    """Resolved locations of jurisdiction rules and document templates."""

    jurisdictions: Path
    templates: Path


def build_data_paths(base_path: Path) -> DataPaths:
    """Resolve rule and template directories under the base path."""
    return DataPaths(
        jurisdictions=base_path / "jurisdictions",
        templates=base_path / "templates",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings."""
    return Settings()
