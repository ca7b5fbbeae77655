"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional .env
file). Variable names follow the MinIO deployment this gateway was built
for: MINIO_ENDPOINT, MINIO_PORT, MINIO_ACCESS_KEY, ...

Bucket names, presigned URL lifetime and the multi-upload cap are constants
in the core module, not settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # API Configuration
    api_title: str = "Image Gateway API"
    api_version: str = "v1"
    port: int = Field(
        default=3001,
        description="Port the HTTP server listens on"
    )

    # Object store (MinIO / S3-compatible)
    minio_endpoint: str = Field(
        default="localhost",
        description="Object store host name"
    )
    minio_port: int = Field(
        default=9000,
        description="Object store port"
    )
    minio_use_ssl: bool = Field(
        default=False,
        description="Use TLS for the object store connection"
    )
    minio_access_key: str = Field(
        default="",
        description="Object store access key"
    )
    minio_secret_key: str = Field(
        default="",
        description="Object store secret key"
    )
    minio_region: str = Field(
        default="us-east-1",
        description="Region used when creating buckets and signing requests"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory object store instead of MinIO. Enables local dev without a store."
    )

    # Upload intake
    staging_dir: str = Field(
        default="uploads",
        description="Local directory where uploads are staged before they are pushed to the store"
    )

    # Startup behavior
    bucket_provisioning: Literal["best_effort", "fail_fast"] = Field(
        default="best_effort",
        description="best_effort logs provisioning errors and keeps starting; fail_fast aborts startup"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def minio_endpoint_url(self) -> str:
        """Full endpoint URL built from host, port and TLS flag."""
        scheme = "https" if self.minio_use_ssl else "http"
        return f"{scheme}://{self.minio_endpoint}:{self.minio_port}"

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required settings that are missing.

        Credentials are only required when talking to a real store.
        """
        missing = []

        if not self.storage_mock_mode:
            if not self.minio_access_key:
                missing.append("MINIO_ACCESS_KEY")
            if not self.minio_secret_key:
                missing.append("MINIO_SECRET_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() or pass a Settings object to create_app().
    """
    return Settings()
