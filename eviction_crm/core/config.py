"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Catalogued variables (DATABASE_URL, NEXTAUTH_*, EMAIL_*, ADMIN_EMAIL_ADDRESSES)
    are not declared here. They are read live through the environment validator
    so that changes are picked up without a restart.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Proactive Eviction CRM"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_BUFFER_SIZE: int = 1000

    # Database
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_RECONNECT_MAX_ATTEMPTS: int = 5
    DB_RECONNECT_BASE_DELAY_MS: int = 1000
    DB_RECONNECT_MAX_DELAY_MS: int = 30000

    # Email delivery
    EMAIL_RETRY_INTERVAL_S: float = 60.0
    EMAIL_MAX_ATTEMPTS: int = 5
    EMAIL_CONNECTION_TIMEOUT_S: float = 10.0
    EMAIL_QUEUE_DEGRADED_THRESHOLD: int = 10

    # Deployment tracking
    DEPLOYMENT_HISTORY_SIZE: int = 10

    # Admin access
    # none: no checks (development only)
    # psk: bearer token must match AUTH_TOKEN_ADMIN
    AUTH_MODE: str = "psk"
    AUTH_TOKEN_ADMIN: Optional[str] = None

    # Observability
    METRICS_ENABLED: bool = True

    @property
    def is_production(self) -> bool:
        """Whether the app runs in the production environment."""
        return self.APP_ENV.lower() == "production"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v

    @field_validator("AUTH_MODE")
    @classmethod
    def validate_auth_mode(cls, v: str) -> str:
        """Validate admin auth mode."""
        valid_modes = {"none", "psk"}
        v = v.lower()
        if v not in valid_modes:
            raise ValueError(f"AUTH_MODE must be one of {valid_modes}")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
