"""Configuration package."""

from reseller_ledger.config.remote import RemoteBackendConfig, parse_remote_config
from reseller_ledger.config.settings import (
    AppSettings,
    GeminiSettings,
    LocalStorageSettings,
    RemoteAuthSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "LocalStorageSettings",
    "RemoteAuthSettings",
    "RemoteBackendConfig",
    "Settings",
    "get_settings",
    "parse_remote_config",
    "validate_all_settings",
]
