"""
Application Configuration

Settings class using pydantic-settings for environment variable loading.
Defines resource limits and application configuration.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For example, MAX_UPLOAD_SIZE can be set via MAX_UPLOAD_SIZE env var.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="StillMotion API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="0.1.0", description="API version")

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Storage
    storage_path: str = Field(
        default="/data",
        alias="STORAGE_PATH",
        description="Root path for uploads and generated clips",
    )

    # Resource Limits
    max_upload_size: int = Field(
        default=25 * 1024 * 1024,  # 25MB
        description="Maximum request body size in bytes (default: 25MB)",
    )
    result_ttl_seconds: int = Field(
        default=3600,
        description="How long finished job results are kept in Redis",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Uses lru_cache to ensure settings are only loaded once per process.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
