"""Application configuration powered by Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Final
from urllib.parse import quote_plus

from pydantic import AnyUrl, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized configuration object with environment fallbacks."""

    model_config = SettingsConfigDict(env_prefix="BEDHEAT_", env_file=".env", extra="allow")

    # App
    app_name: str = "BedHeat"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8430
    debug: bool = False
    log_level: str = Field(default="info")

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="bedheat")
    db_user: str = Field(default="bedheat")
    db_password: str = Field(default="bedheat")
    db_url: AnyUrl | str | None = Field(default=None)

    # Redis (run lock only; empty disables locking)
    redis_url: AnyUrl | str = Field(default="redis://localhost:6379/0")
    run_lock_ttl_seconds: int = Field(default=25 * 60)

    # Device cloud API
    device_api_url: AnyUrl | str = Field(default="https://client-api.8slp.net/v1")
    device_auth_url: AnyUrl | str = Field(default="https://auth-api.8slp.net/v1/tokens")
    device_client_id: str = Field(default="")
    device_client_secret: str = Field(default="")
    device_request_timeout: float = Field(default=15.0)

    # Cron trigger
    cron_secret: str = Field(default="")
    enable_internal_scheduler: bool = Field(default=False)
    run_interval_minutes: int = Field(default=30)

    # Retry policy for device calls
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)

    @field_validator("cron_secret", mode="before")
    @classmethod
    def _strip_secret(cls, v: str) -> str:
        """Treat whitespace-only secrets (env var set but blank) as unset."""
        if isinstance(v, str):
            return v.strip()
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Return a fully qualified async SQLAlchemy database URL."""

        if self.db_url:
            return str(self.db_url)
        return (
            f"postgresql+psycopg://{quote_plus(self.db_user)}:{quote_plus(self.db_password)}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


SETTINGS: Final[Settings] = get_settings()
