"""Configuration package."""

from debt_ledger.config.settings import (
    UINT256_MAX,
    AssetSettings,
    LedgerSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "UINT256_MAX",
    "AssetSettings",
    "LedgerSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
