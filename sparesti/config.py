"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class SparestiConfig(BaseSettings):
    """Sparesti ledger configuration"""
    
    # Storage configuration
    database_url: str = "sqlite:///sparesti.db"  # or memory:// for tests
    sqlite_timeout_seconds: float = 30.0
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Ledger rules
    recent_transaction_days: int = 30
    transfer_category: str = "Transfer"
    amount_precision: int = 2
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "SPARESTI_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = SparestiConfig()


def get_config() -> SparestiConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SparestiConfig:
    """Reload configuration from environment"""
    global config
    config = SparestiConfig()
    return config
