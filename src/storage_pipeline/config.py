"""
Configuration settings for the storage request pipeline.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from storage_pipeline.models.enums import StorageRetryPolicyType


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "storage-pipeline"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Storage Account ===
    STORAGE_ACCOUNT_URL: str = "https://account.blob.core.windows.net"
    SECONDARY_HOST: Optional[str] = None  # e.g. "account-secondary.blob.core.windows.net"
    STORAGE_SCOPES: list[str] = ["https://storage.azure.com/.default"]

    # === Transport ===
    HTTP_TIMEOUT: float = 30.0  # seconds
    USER_AGENT_PREFIX: Optional[str] = None

    # === Generic Retry (strategy engine) ===
    MAX_RETRIES: int = 3
    RETRY_DELAY_MS: int = 1000
    MAX_RETRY_DELAY_MS: int = 64000

    # === Storage Retry (dual endpoint) ===
    RETRY_POLICY_TYPE: StorageRetryPolicyType = StorageRetryPolicyType.EXPONENTIAL
    STORAGE_MAX_TRIES: int = 4
    STORAGE_RETRY_DELAY_MS: int = 4000
    STORAGE_MAX_RETRY_DELAY_MS: int = 120000
    TRY_TIMEOUT_MS: Optional[int] = None  # sent as ?timeout=<seconds> per attempt


# Global settings instance
settings = Settings()
