"""Engine configuration from environment variables and .env.

Tariff values are not settings: they live per tenant in TariffSettings and
reach the calculators as a TariffConfig snapshot.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Billing engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./condo_billing.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default="logs/billing.log", description="Log file path")

    # Payments
    excess_split_policy: Literal["utilities", "split"] = Field(
        default="utilities",
        description="How overpayments are divided between advance buckets",
    )
    allocation_strategy: Literal["oldest_first", "newest_first"] = Field(
        default="oldest_first",
        description="Order in which open bills receive a payment",
    )

    # Bills
    bill_number_prefix: str = Field(default="MT", description="Prefix of statement numbers")
    reading_day: int = Field(default=26, ge=1, le=31, description="Meter reading day of month")
    statement_day: int = Field(default=27, ge=1, le=31, description="Statement day of month")
    due_day: int = Field(default=6, ge=1, le=31, description="Due day in the following month")

    @field_validator("excess_split_policy", "allocation_strategy", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _uppercase(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


_settings: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Return the process settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings() -> None:
    """Forget loaded settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


__all__ = ["EngineSettings", "get_settings", "reset_settings"]
