"""
Configuration Management for Reseller Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All environment configuration is centralized here.
The remote backend config blob is different: the operator supplies it at
connect time, so it lives in `config/remote.py` as a validated model.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LocalStorageSettings(BaseSettings):
    """Device-local durable storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LOCAL_",
        extra="ignore"
    )

    data_dir: str = Field(
        default=".ledger",
        description="Directory holding the local snapshot files"
    )

    # Keys of the independently stored snapshots
    transactions_key: str = Field(
        default="reseller_transactions",
        description="Key of the transactions snapshot"
    )
    expenses_key: str = Field(
        default="reseller_expenses",
        description="Key of the expenses snapshot"
    )
    remote_config_key: str = Field(
        default="reseller_remote_config",
        description="Key of the saved remote backend configuration"
    )


class RemoteAuthSettings(BaseSettings):
    """Operator credentials for the remote identity provider."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_AUTH_",
        extra="ignore"
    )

    email: str = Field(
        ...,
        description="Operator account email"
    )
    password: str = Field(
        ...,
        description="Operator account password"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration for the business analyst."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Dashboard windows
    trend_window_days: int = Field(
        default=7,
        ge=1,
        le=366,
        description="Number of date buckets in the profit trend"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        description="Rows in the recent sales list"
    )

    # Advisory snapshot bound
    advisory_context_limit: int = Field(
        default=50,
        ge=1,
        description="Most recent transactions sent to the analyst"
    )

    # Firestore caps a single write batch at 500 operations
    migration_max_batch_size: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Largest migration committed as one atomic batch"
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

    # Loaded lazily so a missing Gemini key does not block the ledger

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def remote_auth(self) -> RemoteAuthSettings:
        return RemoteAuthSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    Returns a dict of {setting_name: is_valid}, with an
    `<name>_error` entry for each failure. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("local_storage", "remote_auth", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
