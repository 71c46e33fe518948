"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from .currency import Currency
from .storage import StorageInterface, InMemoryStorage, SQLiteStorage


class LedgerConfig(BaseSettings):
    """El Granito credit ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="GRANITO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage: "memory://" or "sqlite:///path/to/file.db"
    database_url: str = "memory://"

    # Ledger rules
    currency: str = "USD"
    default_after_overdue_installments: int = 3
    risk_high_days: int = 15
    risk_critical_days: int = 30

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    @property
    def ledger_currency(self) -> Currency:
        return Currency.from_code(self.currency)


def create_storage(database_url: str) -> StorageInterface:
    """Build a storage backend from a database URL"""
    if database_url in ("memory://", ""):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    raise ValueError(f"Unsupported database_url: {database_url}")


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
