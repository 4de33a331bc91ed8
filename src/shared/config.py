"""Shared configuration management using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import DEFAULT_MAX_STORED_VALUES


class SharedConfig(BaseSettings):
    """Base configuration shared across all packages."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class InterviewConfig(SharedConfig):
    """Configuration for interview sessions and their value ledgers."""
    share_outputs: bool = Field(default=True, validation_alias="SHARE_OUTPUTS")
    max_stored_values: int = Field(
        default=DEFAULT_MAX_STORED_VALUES,
        ge=1,
        validation_alias="MAX_STORED_VALUES",
    )


class DriftEngineConfig(SharedConfig):
    """Configuration for the Drift Engine service."""
    ignore_version_mismatch: bool = Field(
        default=False, validation_alias="IGNORE_VERSION_MISMATCH"
    )
    verify_baseline_integrity: bool = Field(
        default=True, validation_alias="VERIFY_BASELINE_INTEGRITY"
    )
