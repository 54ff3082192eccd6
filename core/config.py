"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Request/response constants
USER_TIMEZONE_HEADER = "User-Timezone"
EXCEL_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FILENAME = "transactions.xlsx"
DEFAULT_ERROR_KEY = "errorMessage"
STACK_TRACE_ERROR_KEY = "stackTrace"
VALIDATION_ERRORS_TITLE = "Validation errors"

PRODUCTION = "Production"
DEVELOPMENT = "Development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Transaction Manager", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: str = Field(default=PRODUCTION, alias="ENVIRONMENT")

    # Storage
    database_path: str = Field(default="transactions.db", alias="DATABASE_PATH")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Accept environment names case-insensitively."""
        for name in (PRODUCTION, DEVELOPMENT):
            if v.lower() == name.lower():
                return name
        raise ValueError(f"Environment must be one of: {[PRODUCTION, DEVELOPMENT]}")

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION


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
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
