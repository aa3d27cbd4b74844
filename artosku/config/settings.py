"""
Configuration Management for ArtosKu

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger engine and reporting configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ARTOSKU_LEDGER_",
        extra="ignore"
    )

    currency: str = Field(
        default="IDR",
        min_length=3,
        max_length=3,
        description="Display currency code (single currency per ledger)"
    )
    timezone: str = Field(
        default="Asia/Jakarta",
        description="Timezone used to group transactions by calendar day"
    )
    budget_near_ratio: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Share of a budget above which spending is flagged NEAR"
    )
    insight_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Trailing window for the daily spending average"
    )
    low_balance_threshold: Decimal = Field(
        default=Decimal("100000"),
        ge=0,
        description="Wallets below this balance raise a low-balance alert"
    )
    due_soon_days: int = Field(
        default=3,
        ge=0,
        le=365,
        description="Unpaid debts due within this many days raise an alert"
    )
    capital_categories: str = Field(
        default="Topup,Transfer,Loan",
        description="Comma-separated categories counted as capital flows"
    )
    verify_after_operation: bool = Field(
        default=False,
        description="Check every wallet invariant after each operation"
    )
    reconcile_on_load: bool = Field(
        default=True,
        description="Repair balance drift from the transaction log on load"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names early."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Reporting timezone as a tzinfo object."""
        return ZoneInfo(self.timezone)

    @property
    def capital_categories_list(self) -> list[str]:
        """Get capital categories as a list."""
        return [c.strip() for c in self.capital_categories.split(",") if c.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    wallets_sheet_name: str = Field(
        default="Wallets",
        description="Name of the sheet for wallets"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    debts_sheet_name: str = Field(
        default="Debts",
        description="Name of the sheet for debts and receivables"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for category budgets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for emitted log records"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)"
    )

    # Collaborators
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage backend the ledger service uses"
    )
    default_owner_id: Optional[str] = Field(
        default=None,
        description="Owner id used when no identity provider is supplied"
    )


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    for name in ("ledger", "app", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
