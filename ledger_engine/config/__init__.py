"""Configuration package."""

from ledger_engine.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    ImportSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "ImportSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
