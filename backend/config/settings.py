"""
Application Settings and Configuration.

Loads configuration from environment variables and config files.
Supports market data credentials, alert monitoring and notification settings.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from .paths import default_database_url


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        FINNHUB_API_KEY: Finnhub API token for quotes, profiles and candles
        DATABASE_URL: Database connection URL (default: sqlite)
        STOCKMANAGER_API_KEY: Optional API key required on non-public routes
    """

    # Market data configuration
    finnhub_api_key: Optional[str] = Field(default=None, alias="FINNHUB_API_KEY")
    finnhub_base_url: str = Field(
        default="https://finnhub.io/api/v1",
        alias="STOCKMANAGER_FINNHUB_BASE_URL",
    )
    market_data_timeout_seconds: float = Field(default=10.0, alias="STOCKMANAGER_MARKET_DATA_TIMEOUT_SECONDS")

    # Retry policy for outbound market data requests
    retry_max_retries: int = Field(default=3, alias="STOCKMANAGER_RETRY_MAX_RETRIES")
    retry_initial_delay_ms: int = Field(default=500, alias="STOCKMANAGER_RETRY_INITIAL_DELAY_MS")
    retry_max_delay_ms: int = Field(default=10000, alias="STOCKMANAGER_RETRY_MAX_DELAY_MS")
    retry_backoff_factor: float = Field(default=2.0, alias="STOCKMANAGER_RETRY_BACKOFF_FACTOR")

    @field_validator("finnhub_api_key")
    @classmethod
    def validate_api_key(cls, v):
        """Strip whitespace from API key to prevent authentication failures."""
        return v.strip() if v else v

    # Database Configuration
    database_url: str = Field(
        default=default_database_url(),
        alias="DATABASE_URL"
    )

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_retention_days: int = Field(default=30, alias="STOCKMANAGER_LOG_RETENTION_DAYS")

    # API authentication (optional for local dev/test)
    api_auth_enabled: bool = Field(default=False, alias="STOCKMANAGER_API_KEY_AUTH_ENABLED")
    api_auth_key: Optional[str] = Field(default=None, alias="STOCKMANAGER_API_KEY")
    backend_reload: bool = Field(default=False, alias="STOCKMANAGER_BACKEND_RELOAD")

    # Background alert monitor
    alert_monitor_enabled: bool = Field(default=True, alias="STOCKMANAGER_ALERT_MONITOR_ENABLED")
    alert_monitor_poll_seconds: int = Field(default=60, alias="STOCKMANAGER_ALERT_MONITOR_POLL_SECONDS")

    # Inbound TradingView signal webhook
    signal_webhook_secret: Optional[str] = Field(default=None, alias="STOCKMANAGER_SIGNAL_WEBHOOK_SECRET")

    # Notification delivery (email + webhook)
    notifications_enabled: bool = Field(default=True, alias="STOCKMANAGER_NOTIFICATIONS_ENABLED")
    webhook_timeout_seconds: int = Field(default=15, alias="STOCKMANAGER_WEBHOOK_TIMEOUT_SECONDS")

    # SMTP email delivery configuration
    smtp_host: Optional[str] = Field(default=None, alias="STOCKMANAGER_SMTP_HOST")
    smtp_port: int = Field(default=587, alias="STOCKMANAGER_SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, alias="STOCKMANAGER_SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, alias="STOCKMANAGER_SMTP_PASSWORD")
    smtp_from_email: Optional[str] = Field(default=None, alias="STOCKMANAGER_SMTP_FROM_EMAIL")
    smtp_use_tls: bool = Field(default=True, alias="STOCKMANAGER_SMTP_USE_TLS")
    smtp_use_ssl: bool = Field(default=False, alias="STOCKMANAGER_SMTP_USE_SSL")
    smtp_timeout_seconds: int = Field(default=15, alias="STOCKMANAGER_SMTP_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None


def has_market_data_credentials() -> bool:
    """
    Check if Finnhub credentials are configured.

    Returns:
        True if the API token is set and non-empty
    """
    settings = get_settings()
    return bool(settings.finnhub_api_key and settings.finnhub_api_key.strip())
