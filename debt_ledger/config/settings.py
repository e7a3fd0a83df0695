"""
Configuration Management for the Debt Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core itself has very few knobs - transaction timing, retry
policy, asset defaults and logging - and every one of them is listed below.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


UINT256_MAX = 2**256 - 1


class LedgerSettings(BaseSettings):
    """Transaction boundary and retry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    lock_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="How long a writer waits for the transaction boundary before a Conflict (0 waits forever)"
    )
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts (including the first) for an operation that hit a Conflict"
    )
    conflict_retry_wait_min: float = Field(
        default=0.05,
        ge=0.0,
        description="Minimum back-off between Conflict retries, in seconds"
    )
    conflict_retry_wait_max: float = Field(
        default=1.0,
        ge=0.0,
        description="Maximum back-off between Conflict retries, in seconds"
    )

    @model_validator(mode="after")
    def check_wait_bounds(self) -> "LedgerSettings":
        if self.conflict_retry_wait_max < self.conflict_retry_wait_min:
            raise ValueError("conflict_retry_wait_max cannot be below conflict_retry_wait_min")
        return self


class AssetSettings(BaseSettings):
    """Defaults for the asset registry and amount codec."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_ASSET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_decimals: int = Field(
        default=18,
        ge=0,
        le=77,
        description="Decimals assumed for an asset referenced only by address"
    )
    max_amount: int = Field(
        default=UINT256_MAX,
        gt=0,
        description="Largest amount, in smallest units, the ledger accepts"
    )


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Standard library log level name"
    )
    json_logs: bool = Field(
        default=True,
        description="Render JSON lines (True) or human-readable console output (False)"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def assets(self) -> AssetSettings:
        return AssetSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "assets", "logging"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
