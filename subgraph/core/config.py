from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Subgraph settings, read from SUBGRAPH_* environment variables or .env
    """

    # Application
    app_name: str = "subgraph"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
    )
    log_file: Optional[str] = None
    log_rotation: str = "50 MB"
    log_retention: str = "14 days"

    # Federation
    allow_resolver_override: bool = False
    resolver_timeout: Optional[float] = Field(default=None, gt=0)  # seconds per reference resolver
    max_representations: Optional[int] = Field(default=None, gt=0)  # per _entities call

    model_config = SettingsConfigDict(
        env_prefix="SUBGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached subgraph settings
    """
    return Settings()
