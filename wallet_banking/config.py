"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class BankingConfig(BaseSettings):
    """Wallet banking configuration"""

    # Database configuration
    database_url: str = "sqlite:///banking.db"  # or memory:// for a throwaway store
    seed_on_startup: bool = True

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    demo_username: str = "Fani"  # Account served by the /api/account routes
    deposit_min_amount: str = "10.00"
    deposit_max_amount: str = "50000.00"
    withdrawal_min_amount: str = "50.00"
    loan_max_ratio: str = "0.10"
    default_page_size: int = 20
    max_page_size: int = 100

    # Client configuration
    client_api_base_url: str = "http://localhost:8090/api"
    client_currency: str = "ZAR"
    client_timeout_seconds: float = 10.0
    client_page_size: int = 6
    client_sync_interval_seconds: float = 30.0
    client_post_mutation_sync_delay_seconds: float = 2.0
    client_optimistic_max_age_seconds: float = 300.0
    client_duplicate_window_seconds: float = 120.0
    client_amount_epsilon: str = "0.01"

    model_config = SettingsConfigDict(
        env_prefix="BANKING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global configuration instance
config = BankingConfig()


def get_config() -> BankingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankingConfig:
    """Reload configuration from environment"""
    global config
    config = BankingConfig()
    return config
