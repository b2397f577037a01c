"""
Configuration Management for LedgerBook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The engine has exactly one external dependency (the relational store),
and every tunable rule (phone digits, amount ceiling, reporting timezone)
is validated at startup rather than discovered mid-request.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///ledgerbook.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made when opening the first connection"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        """In-memory SQLite databases need a single shared connection."""
        return self.url in ("sqlite://", "sqlite:///:memory:")


class AppSettings(BaseSettings):
    """
    Ledger rules and presentation defaults.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_name: str = Field(
        default="LedgerX",
        description="Name shown in balance reminder messages"
    )

    # Presentation
    currency_symbol: str = Field(
        default="₹",
        min_length=1,
        description="Presentation currency symbol"
    )
    currency_grouping: Literal["indian", "western"] = Field(
        default="indian",
        description="Digit grouping used when formatting amounts"
    )

    # Reporting
    reporting_timezone: str = Field(
        default="UTC",
        description="Timezone defining calendar days and months for reports"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Default number of entries in the recent activity feed"
    )

    # Validation rules
    phone_min_digits: int = Field(
        default=10,
        ge=1,
        description="Minimum digits in a contact phone number"
    )
    phone_max_digits: int = Field(
        default=12,
        ge=1,
        description="Maximum digits in a contact phone number"
    )
    max_entry_amount: Decimal = Field(
        default=Decimal("100000000"),
        gt=0,
        description="Largest amount accepted for a single ledger entry"
    )

    @field_validator("reporting_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @model_validator(mode="after")
    def validate_phone_bounds(self) -> "AppSettings":
        if self.phone_min_digits > self.phone_max_digits:
            raise ValueError("phone_min_digits cannot exceed phone_max_digits")
        return self

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.reporting_timezone)


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

    # Sub-settings are loaded lazily so a bad database URL does not
    # prevent formatting helpers from working.

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

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

    try:
        _ = settings.database
        results["database"] = True
    except Exception as e:
        results["database"] = False
        results["database_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
