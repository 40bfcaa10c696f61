"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FINTRACK_",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./fintrack.db"
    db_pool_size: int = 10
    db_max_overflow: int = 10

    # Service
    service_name: str = "fintrack-ledger"
    log_level: str = "INFO"

    # Ledger clock: "current month" windows and overdue checks use wall time in this zone
    reference_timezone: str = "UTC"

    # Scheduled transactions
    default_reminder_days: int = 1
    max_reminder_days: int = 30
    reminder_lookahead_days: int = 30


settings = Settings()
