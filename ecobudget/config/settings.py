"""
Configuration Management for EcoBudget

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, unlock timing and sanity thresholds are all tunable
without touching the engine code.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Persistent key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ECOBUDGET_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(json|memory)$",
        description="Store backend: one JSON file per key, or in-memory"
    )
    data_dir: str = Field(
        default=".ecobudget",
        description="Directory holding the JSON files for the json backend"
    )


class GamificationSettings(BaseSettings):
    """Challenge unlock timing."""

    model_config = SettingsConfigDict(
        env_prefix="ECOBUDGET_GAMIFICATION_",
        extra="ignore"
    )

    unlock_delay_seconds: int = Field(
        default=60,
        ge=0,
        description="Delay between a challenge completion and the next unlock"
    )
    # Coarser than 5s becomes noticeable to the user
    tick_interval_seconds: float = Field(
        default=5.0,
        ge=0.1,
        le=5.0,
        description="Cadence of the background unlock ticker"
    )
    run_ticker: bool = Field(
        default=False,
        description="Start a background ticker; otherwise unlocks are applied on read"
    )

    @property
    def unlock_delay_ms(self) -> int:
        return self.unlock_delay_seconds * 1000


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

    default_currency: str = Field(
        default="USD",
        description="Currency preference used when none is stored"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this are accepted but flagged as suspicious"
    )

    @field_validator("default_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def gamification(self) -> GamificationSettings:
        return GamificationSettings()

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

    for name in ("storage", "gamification", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
