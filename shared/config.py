"""
Shared configuration management for resource services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="RESOURCE_ENV")
    log_level: str = Field(default="info", validation_alias="RESOURCE_LOG_LEVEL")

    # Storage backend selection
    mongo_uri: Optional[str] = Field(default=None, validation_alias="MONGO_URI")
    test_mode: bool = Field(default=False, validation_alias="TEST")
    data_dir: str = Field(default="./data", validation_alias="RESOURCE_DATA_DIR")
    mongo_timeout_ms: int = Field(default=5000, validation_alias="RESOURCE_MONGO_TIMEOUT_MS")

    # Cache layer ("", "memory" or a redis:// URL)
    cacher: Optional[str] = Field(default=None, validation_alias="RESOURCE_CACHER")
    cache_ttl_seconds: int = Field(default=30, validation_alias="RESOURCE_CACHE_TTL")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
