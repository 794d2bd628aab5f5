"""
Configuration module for StockManager backend.

Provides settings management using pydantic-settings.
Supports loading from environment variables and .env files.
"""

from .settings import Settings, get_settings, reset_settings, has_market_data_credentials
from .paths import (
    APP_IDENTIFIER,
    resolve_app_data_dir,
    default_database_url,
    default_log_directory,
    default_backup_directory,
)

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "has_market_data_credentials",
    "APP_IDENTIFIER",
    "resolve_app_data_dir",
    "default_database_url",
    "default_log_directory",
    "default_backup_directory",
]
