"""Application configuration from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application settings loaded from environment (prefix ``PORTFEL_``)."""

    model_config = SettingsConfigDict(env_prefix="PORTFEL_", env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Portfel"
    debug: bool = False

    # Storage
    data_dir: Path = Path("data")
    database_file: str = "portfel.db"
    storage_backend: str = "sqlite"  # 'sqlite' or 'memory'

    # Portfolio
    portfolio_cache_ttl_seconds: float = 5.0
    currency: str = "PLN"

    # CSV import
    csv_max_bytes: int = 5 * 1024 * 1024  # 5MB

    # Notifications
    notifications_permission: bool = True  # Grant flag for the local notification service
    history_limit: int = 100

    # Logging
    log_level: str = "INFO"
    log_file: str = "portfel.log"
    log_max_bytes: int = 5 * 1024 * 1024  # 5MB per file
    log_backup_count: int = 3

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sqlite", "memory"):
            raise ValueError("storage_backend must be 'sqlite' or 'memory'")
        return v

    @field_validator("portfolio_cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("portfolio_cache_ttl_seconds must not be negative")
        return v

    @field_validator("history_limit")
    @classmethod
    def validate_history_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("history_limit must be at least 1")
        return v

    @property
    def database_path(self) -> Path:
        """Path of the SQLite key/value database."""
        return self.data_dir / self.database_file

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


@lru_cache
def get_config() -> AppConfig:
    """Return the process-wide configuration."""
    return AppConfig()
