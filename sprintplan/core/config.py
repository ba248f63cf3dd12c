"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SPRINTPLAN_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_dir: Path = Field(
        default=Path("logs"),
        description="Directory for rotated log files",
    )

    # Checkpoints
    checkpoint_backend: Literal["file", "sql"] = Field(
        default="file",
        description="Storage medium for conductor checkpoints",
    )
    checkpoint_dir: Path = Field(
        default=Path(".sprintplan/checkpoints"),
        description="Directory for file-based checkpoints",
    )
    database_url: str = Field(
        default="sqlite:///./.sprintplan/checkpoints.db",
        description="SQLAlchemy URL for the sql checkpoint backend",
    )
    checkpoint_lease_seconds: int | None = Field(
        default=None,
        ge=1,
        description="Advisory lease written with each checkpoint",
    )

    # Planning policy
    max_files_per_task: int = Field(
        default=5,
        ge=1,
        description="Tasks above this file count are flagged and split",
    )
    split_chunk_size: int = Field(
        default=4,
        ge=1,
        description="Files per sub-task when splitting oversized tasks",
    )
    auto_split: bool = Field(
        default=True,
        description="Split oversized tasks before planning",
    )
    review_threshold: int = Field(
        default=2,
        ge=1,
        description="Minimum wave size that gets a review checkpoint after it",
    )
    team_threshold: int = Field(
        default=2,
        ge=1,
        description="Minimum wave size that warrants a multi-worker team",
    )

    # Estimation
    default_calibration_factor: float = Field(
        default=0.5,
        gt=0,
        description="Calibration used when no learned model is available",
    )
    estimation_data_path: Path = Field(
        default=Path(".sprintplan/estimation-data.json"),
        description="Historical estimate/actual data points",
    )

    # Collaborators
    spec_quality_threshold: float = Field(
        default=7.0,
        ge=0,
        le=10,
        description="Minimum spec score accepted by the generator loop",
    )
    spec_max_iterations: int = Field(
        default=3,
        ge=1,
        description="Generate/evaluate iterations for spec generation",
    )
    collaborator_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per collaborator call before giving up",
    )
    collaborator_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base backoff delay in seconds (doubles per attempt)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.max_files_per_task
        5
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
