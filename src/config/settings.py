"""
Configuration Management for Daybook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Process-level configuration (where the database lives,
analytics windows, retry policy) is centralized here. User preferences that
live inside the store (food cost categories, tracked items, ...) are NOT
configuration - see src.models.settings.Preferences.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from DAYBOOK_* environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DAYBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Storage
    data_dir: Path = Field(
        default=Path.home() / ".daybook",
        description="Directory holding the on-device database"
    )
    database_filename: str = Field(
        default="daybook.sqlite3",
        min_length=1,
        description="SQLite database file name inside data_dir"
    )
    storage_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a storage call that hit a transient lock"
    )

    # Analytics
    gas_usage_window_days: int = Field(
        default=60,
        ge=1,
        le=366,
        description="Trailing window used for average daily gas usage"
    )
    fiscal_year_start_month: int = Field(
        default=4,
        description="Calendar month a fiscal year starts on (April)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @field_validator('fiscal_year_start_month')
    @classmethod
    def validate_fiscal_month(cls, v: int) -> int:
        """Fiscal-year bucketing is defined for an April start only."""
        if v != 4:
            raise ValueError("fiscal_year_start_month must be 4 (April)")
        return v

    @property
    def database_path(self) -> Path:
        """Full path to the SQLite database file."""
        return self.data_dir.expanduser() / self.database_filename


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return AppSettings()
