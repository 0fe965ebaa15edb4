"""Configuration settings for s2i_light.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from s2i_light.types import PullPolicy, StagingPolicy


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the S2I_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="S2I_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Container engine
    force_bin: str | None = Field(
        default=None,
        description="Use only this binary as the container engine",
    )
    pull_policy: PullPolicy = Field(
        default=PullPolicy.IF_NOT_PRESENT,
        description="When to pull the builder image",
    )

    # Staging
    tmp_dir: Path | None = Field(
        default=None,
        description="Parent directory for staging areas (uses system default if not set)",
    )
    keep_staging: StagingPolicy = Field(
        default=StagingPolicy.ON_FAILURE,
        description="When to retain the staging area after a build",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    clone_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for cloning remote source",
    )
    pull_timeout: int = Field(
        default=1800,
        ge=1,
        description="Timeout for pulling the builder image",
    )
    inspect_timeout: int = Field(
        default=60,
        ge=1,
        description="Timeout for image queries and inspection",
    )
    run_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for transient containers",
    )
    build_timeout: int = Field(
        default=3600,
        ge=1,
        description="Timeout for the image build",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
