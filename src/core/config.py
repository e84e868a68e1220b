"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Storage keys are left optional here; the storage layer decides which of them
are required for the active mode.
"""

from collections.abc import Iterable
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = Field(default="Session Recorder API", description="Application name")
    app_version: str = Field(default="1.0.0", description="API version")
    app_env: Literal["development", "staging", "production"] = Field(
        default="production", description="Environment"
    )
    app_debug: bool = Field(default=False, description="Debug mode")
    app_host: str = Field(default="0.0.0.0", description="API host")
    app_port: int = Field(default=8000, description="API port")
    app_workers: int = Field(default=4, description="Number of workers")

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    storage_mode: str | None = Field(
        default=None, description="Blob storage mode (memory or remote)"
    )
    storage_endpoint_url: str | None = Field(
        default=None, description="Remote object storage API base URL"
    )
    storage_bucket: str | None = Field(
        default=None, description="Remote object storage bucket"
    )
    storage_service_key: str | None = Field(
        default=None, description="Remote object storage service credential"
    )
    public_storage_base_url: str | None = Field(
        default=None, description="Public base URL or path used for blob proxy links"
    )
    storage_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Remote storage request timeout in seconds"
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log format"
    )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["*"])
    cors_allow_headers: list[str] = Field(default=["*"])

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator(
        "storage_mode",
        "storage_endpoint_url",
        "storage_bucket",
        "storage_service_key",
        "public_storage_base_url",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank values as unset."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    # -------------------------------------------------------------------------
    # Key lookups
    # -------------------------------------------------------------------------
    def get_value(self, key: str) -> str | None:
        """
        Look up a configuration value by its environment variable name.

        Args:
            key: Environment-style key, e.g. ``STORAGE_BUCKET``.

        Returns:
            The stripped string value, or None when unset or blank.
        """
        field_name = key.strip().lower()
        if field_name not in type(self).model_fields:
            return None
        value = getattr(self, field_name)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def require_value(self, key: str) -> str:
        """Look up a configuration value, raising if it is missing."""
        value = self.get_value(key)
        if value is None:
            raise ConfigurationError(
                message=f"Missing required configuration {key}",
                missing_keys=[key],
            )
        return value

    def require_enum_value(self, key: str, allowed: Iterable[str]) -> str:
        """
        Look up a configuration value restricted to a set of options.

        Matching is case-insensitive; the canonical option is returned.

        Raises:
            ConfigurationError: If the value is missing or not allowed.
        """
        options = list(allowed)
        value = self.require_value(key)
        for option in options:
            if option.lower() == value.lower():
                return option
        raise ConfigurationError(
            message=(
                f"Invalid value for {key}. Expected one of "
                f"{', '.join(options)}, received {value}"
            ),
            missing_keys=[key],
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def refresh_settings() -> None:
    """Drop the cached settings so the next lookup re-reads the environment."""
    get_settings.cache_clear()
