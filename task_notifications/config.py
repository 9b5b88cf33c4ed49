"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to stamp and present notification datetimes",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Origin allowed to open websocket and REST connections",
    )

    secret_key: str | None = Field(
        default=None,
        description="Secret used to verify JWT tokens presented on the websocket handshake",
    )
    jwt_algorithm: str = Field(default="HS256")

    kafka_brokers: str = Field(
        default="kafka:29092",
        description="Comma separated list of bootstrap brokers",
        min_length=1,
    )
    kafka_client_id: str = Field(default="notifications-service")
    kafka_group_id: str = Field(default="notifications-service-group")
    kafka_consumer_enabled: bool = Field(
        default=True,
        description="Start the event consumer together with the HTTP application",
    )
    kafka_retries: int = Field(default=5, ge=0)
    kafka_initial_retry_ms: int = Field(default=300, gt=0)
    kafka_connection_timeout_ms: int = Field(default=3000, gt=0)
    kafka_request_timeout_ms: int = Field(default=25000, gt=0)
    kafka_session_timeout_ms: int = Field(default=10000, gt=0)
    kafka_heartbeat_interval_ms: int = Field(default=3000, gt=0)

    event_source: str = Field(
        default="notifications-service",
        description="Value of the ``source`` header attached to published events",
    )
    publisher_retries: int = Field(default=20, ge=0)
    publisher_initial_retry_ms: int = Field(default=1000, gt=0)
    publisher_max_retry_ms: int = Field(default=3000, gt=0)

    @model_validator(mode="after")
    def _validate_timeouts(self) -> "Settings":
        if self.kafka_heartbeat_interval_ms >= self.kafka_session_timeout_ms:
            raise ValueError(
                "KAFKA_HEARTBEAT_INTERVAL_MS must be lower than KAFKA_SESSION_TIMEOUT_MS"
            )
        if self.publisher_initial_retry_ms > self.publisher_max_retry_ms:
            raise ValueError(
                "PUBLISHER_INITIAL_RETRY_MS cannot exceed PUBLISHER_MAX_RETRY_MS"
            )
        return self

    @property
    def bootstrap_servers(self) -> list[str]:
        """Return the configured brokers as a list."""

        return [broker.strip() for broker in self.kafka_brokers.split(",") if broker.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
