"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = structlog.get_logger(__name__)

MAX_URL_EXPIRY_SECONDS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    minio_endpoint: str | None = Field(default=None, alias="MINIO_ENDPOINT")
    minio_region: str | None = Field(default=None, alias="MINIO_REGION")
    minio_access_key: str | None = Field(default=None, alias="MINIO_ACCESS_KEY")
    minio_secret_key: str | None = Field(default=None, alias="MINIO_SECRET_KEY")
    minio_bucket_name: str = Field(default="q-hub", alias="MINIO_BUCKET_NAME")
    minio_base_path: str = Field(default="images", alias="MINIO_BASE_PATH")
    minio_url_expiry_seconds: int = Field(
        default=MAX_URL_EXPIRY_SECONDS, alias="MINIO_URL_EXPIRY_SECONDS"
    )
    minio_refresh_expiry_ms: int | None = Field(
        default=None, alias="MINIO_REFRESH_EXPIRY_MS"
    )
    minio_fetch_timeout_seconds: float = Field(
        default=30.0, alias="MINIO_FETCH_TIMEOUT_SECONDS"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("minio_url_expiry_seconds", mode="before")
    @classmethod
    def _coerce_url_expiry(cls, value: object) -> int:
        """Cap the signed URL lifetime at seven days; fall back on bad input."""

        if value is None or value == "":
            return MAX_URL_EXPIRY_SECONDS
        try:
            parsed = int(str(value).strip())
        except ValueError:
            parsed = 0
        if parsed <= 0:
            LOGGER.warning(
                "invalid_minio_url_expiry",
                value=str(value),
                fallback_seconds=MAX_URL_EXPIRY_SECONDS,
            )
            return MAX_URL_EXPIRY_SECONDS
        return min(parsed, MAX_URL_EXPIRY_SECONDS)

    @field_validator("minio_refresh_expiry_ms", mode="before")
    @classmethod
    def _coerce_refresh_expiry(cls, value: object) -> int | None:
        if value is None or value == "":
            return None
        try:
            parsed = int(str(value).strip())
        except ValueError:
            parsed = 0
        if parsed <= 0:
            LOGGER.warning("invalid_minio_refresh_expiry", value=str(value))
            return None
        LOGGER.info("minio_custom_refresh_expiry", refresh_expiry_ms=parsed)
        return parsed

    @property
    def minio_static_credentials(self) -> bool:
        """Return ``True`` when both halves of a static key pair are set."""

        return bool(self.minio_access_key and self.minio_secret_key)

    def validate_minio_or_raise(self) -> None:
        """Fail with a clear message when the client cannot be built."""

        missing = []
        if not self.minio_region:
            missing.append("MINIO_REGION")
        if not self.minio_endpoint:
            missing.append("MINIO_ENDPOINT")
        if missing:
            raise RuntimeError(
                "Minio storage requires the following env vars: " + ", ".join(missing)
            )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["MAX_URL_EXPIRY_SECONDS", "Settings", "get_settings"]
