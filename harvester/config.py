"""Configuration loader for the Harvester ingestion pipeline (Pydantic edition)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger(__name__)
DEFAULT_STORAGE_HOST = "storage.googleapis.com"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded safely."""


class AppConfig(BaseSettings):
    """Strongly typed runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        validate_default=True,
    )

    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENVIRONMENT", "APP_ENV"),
    )
    log_path: Path = Field(
        default=Path("logs/harvester.log"),
        validation_alias=AliasChoices("APP_LOG_PATH", "LOG_PATH"),
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = Field(
        default=None,
        validation_alias=AliasChoices("APP_LOG_LEVEL", "LOG_LEVEL"),
    )

    # Vendor credentials
    scrapecreator_api_key: SecretStr | None = Field(default=None, validation_alias="SCRAPECREATOR_API_KEY")
    scrapingdog_api_key: SecretStr | None = Field(default=None, validation_alias="SCRAPINGDOG_API_KEY")

    # Durable media storage (S3-compatible; GCS interoperability by default)
    media_bucket_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MEDIA_BUCKET_NAME", "GOOGLE_CLOUD_MEDIA_BUCKET_NAME"),
    )
    media_storage_host: str = Field(DEFAULT_STORAGE_HOST, validation_alias="MEDIA_STORAGE_HOST")
    media_storage_endpoint_url: str | None = Field(default=None, validation_alias="MEDIA_STORAGE_ENDPOINT_URL")
    media_storage_access_key_id: SecretStr | None = Field(default=None, validation_alias="MEDIA_STORAGE_ACCESS_KEY_ID")
    media_storage_secret_access_key: SecretStr | None = Field(
        default=None, validation_alias="MEDIA_STORAGE_SECRET_ACCESS_KEY"
    )
    media_storage_region: str | None = Field(default=None, validation_alias="MEDIA_STORAGE_REGION")

    # Vendor request policy
    vendor_timeout_seconds: float = Field(30.0, gt=0, validation_alias="APP_VENDOR_TIMEOUT_SECONDS")
    vendor_max_retries: int = Field(5, ge=0, le=10, validation_alias="APP_VENDOR_MAX_RETRIES")
    vendor_backoff_base_seconds: float = Field(1.0, gt=0, validation_alias="APP_VENDOR_BACKOFF_BASE_SECONDS")
    vendor_backoff_cap_seconds: float = Field(30.0, gt=0, validation_alias="APP_VENDOR_BACKOFF_CAP_SECONDS")
    vendor_backoff_jitter: float = Field(0.2, ge=0, le=1, validation_alias="APP_VENDOR_BACKOFF_JITTER")

    # Media retrieval policy
    media_fetch_attempts: int = Field(3, ge=1, le=10, validation_alias="APP_MEDIA_FETCH_ATTEMPTS")
    media_fetch_timeout_seconds: float = Field(30.0, gt=0, validation_alias="APP_MEDIA_FETCH_TIMEOUT_SECONDS")
    media_retry_base_seconds: float = Field(1.0, gt=0, validation_alias="APP_MEDIA_RETRY_BASE_SECONDS")
    webp_quality: int = Field(85, ge=1, le=100, validation_alias="APP_WEBP_QUALITY")

    # Pagination
    initial_pagination_batches: int = Field(3, ge=1, le=50, validation_alias="APP_INITIAL_PAGINATION_BATCHES")

    @field_validator("log_path", mode="after")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        expanded = value.expanduser()
        return expanded if expanded.is_absolute() else (Path.cwd() / expanded).resolve()

    @field_validator("media_storage_host", mode="before")
    @classmethod
    def _strip_host(cls, value: str | None) -> str:
        if not value:
            return DEFAULT_STORAGE_HOST
        host = str(value).strip()
        for prefix in ("https://", "http://"):
            if host.lower().startswith(prefix):
                host = host[len(prefix):]
        return host.rstrip("/") or DEFAULT_STORAGE_HOST

    @model_validator(mode="after")
    def _validate_backoff(self) -> "AppConfig":
        if self.vendor_backoff_base_seconds > self.vendor_backoff_cap_seconds:
            raise ConfigError("vendor_backoff_base_seconds cannot exceed vendor_backoff_cap_seconds")
        return self

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level
        return "DEBUG" if self.environment == "development" else "INFO"

    @property
    def storage_endpoint(self) -> str:
        return self.media_storage_endpoint_url or f"https://{self.media_storage_host}"

    @property
    def has_media_storage(self) -> bool:
        return bool(self.media_bucket_name)

    def ensure_runtime_directories(self) -> None:
        """Create directories required for runtime operation."""
        self.log_path.parent.mkdir(parents=True, exist_ok=True)


def load_config(env_path: Path | None = None) -> AppConfig:
    """Load configuration from .env/environment with validation."""
    load_kwargs: dict[str, str] = {}
    if env_path is not None:
        load_dotenv(env_path, override=False)
        load_kwargs["_env_file"] = str(env_path)
    else:
        load_dotenv(override=False)
    try:
        config = AppConfig(**load_kwargs)
    except ValidationError as exc:
        raise ConfigError("Invalid configuration") from exc

    config.ensure_runtime_directories()

    LOGGER.info(
        "AppConfig loaded",
        extra={
            "event": "config.loaded",
            "extra_fields": {
                "environment": config.environment,
                "media_bucket": config.media_bucket_name,
                "storage_host": config.media_storage_host,
                "vendor_max_retries": config.vendor_max_retries,
            },
        },
    )
    return config
