"""
Shared configuration management for the Directory service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="DIRECTORY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache feature flag, fixed for the lifetime of the process
    use_cache: bool = Field(default=False)

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/directory")
    table_name: str = Field(default="records")
    store_backend: str = Field(default="postgres", description="postgres or memory")

    # Cache invalidation
    invalidation_concurrency: int = Field(default=32, ge=1)

    # Rating aggregation
    rating_compare_and_swap: bool = Field(default=True)
    rating_max_attempts: int = Field(default=5, ge=1)

    # Observability
    metrics_enabled: bool = Field(default=True)


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


def describe(config: BaseConfig, keys: Optional[list] = None) -> dict:
    """Return the non-secret settings a service reports on its root endpoint."""
    keys = keys or ["env", "table_name", "use_cache", "store_backend"]
    return {key: getattr(config, key) for key in keys}
