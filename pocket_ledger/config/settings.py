"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which knobs the ledger exposes and
ensures all configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POCKET_LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        description="Storage backend: 'json' (files on disk) or 'memory'"
    )
    data_dir: Path = Field(
        default=Path(".pocket_ledger"),
        description="Directory holding one JSON document per collection"
    )

    # Collection keys (same names the browser app used in localStorage)
    transactions_key: str = Field(default="financial_tracker_transactions")
    pockets_key: str = Field(default="financial_tracker_pockets")
    goals_key: str = Field(default="financial_tracker_goals")
    activity_key: str = Field(default="financial_tracker_goal_investment_activity")
    audit_key: str = Field(default="financial_tracker_audit_log")

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("json", "memory"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v


class AccrualSettings(BaseSettings):
    """Investment return simulation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POCKET_LEDGER_ACCRUAL_",
        extra="ignore"
    )

    days_per_year: int = Field(
        default=365,
        ge=360,
        le=366,
        description="Divisor used to turn an annual rate into a daily rate"
    )
    max_catch_up_days: int = Field(
        default=3660,
        ge=1,
        description="Maximum number of days processed by a single accrual run"
    )
    activity_label: str = Field(
        default="Daily Investment Return",
        max_length=100,
        description="Label stored on every simulated return entry"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    # Transaction boundary
    future_date_tolerance_days: int = Field(
        default=0,
        ge=0,
        description="How many days in the future a transaction date can be before it is corrected"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def accrual(self) -> AccrualSettings:
        return AccrualSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "accrual", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
