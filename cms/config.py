"""Configuration management for the CMS core.

This module handles environment-based configuration using Pydantic Settings.
Every setting can be overridden with a ``CMS_``-prefixed environment variable,
e.g. ``CMS_STORAGE_BACKEND=file`` or ``CMS_MAX_FILE_SIZE=5242880``.
"""

from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.models import BUNDLE_FORMAT_VERSION

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class CMSConfig(BaseSettings):
    """CMS core configuration."""

    model_config = SettingsConfigDict(env_prefix="CMS_", case_sensitive=False)

    # Environment
    environment: Literal["development", "testing", "production"] = Field(
        default="development", description="Application environment"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Enable JSON formatted logs")

    # Storage
    storage_backend: Literal["memory", "file"] = Field(
        default="memory", description="Key-value store backend"
    )
    data_dir: str = Field(
        default=".cms-data", description="Directory for the file backend"
    )

    # Defaults for new installations
    app_name: str = Field(default="My CMS", description="Application name")
    default_locale: str = Field(default="en", description="Default locale code")
    timezone: str = Field(default="UTC", description="Default timezone")

    # Media ingestion
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE, gt=0, description="Upload size limit in bytes"
    )
    allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/gif", "image/webp"]
    )
    allowed_video_types: list[str] = Field(
        default=["video/mp4", "video/webm", "video/ogg"]
    )
    allowed_document_types: list[str] = Field(
        default=["application/pdf", "text/plain", "application/msword"]
    )

    # Export / import
    export_version: str = Field(
        default=BUNDLE_FORMAT_VERSION,
        description="Version written into exported bundles; import also accepts it",
    )

    # Behavior
    settings_save_delay: float = Field(
        default=0.0, ge=0, description="Simulated settings save latency in seconds"
    )
    recent_limit: int = Field(
        default=10, gt=0, description="Items returned by recent-item queries"
    )

    @computed_field  # type: ignore
    @property
    def allowed_mime_types(self) -> list[str]:
        """All MIME types accepted at upload."""
        return [
            *self.allowed_image_types,
            *self.allowed_video_types,
            *self.allowed_document_types,
        ]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"
