from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

from webhook_dispatcher.domain.value_objects.retry_policy import RetryPolicy


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    CORS_ORIGINS: list[str] = ["*"]

    RETRY_INITIAL_DELAY: int = Field(5, gt=0)
    RETRY_MULTIPLIER: int = Field(3, gt=0)
    RETRY_MAX_ATTEMPTS: int = Field(3, gt=0)
    RETRY_TIME_UNIT_SECONDS: float = Field(1.0, gt=0)

    WEBHOOK_HTTP_TIMEOUT: float = 10.0

    RESULTS_PUBSUB_CHANNEL: str = "webhooks.results"

    WEBHOOK_EVENTS_STREAM: str = "webhooks.events"
    WEBHOOK_EVENTS_GROUP: str = "webhook-dispatcher"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            initial_delay=self.RETRY_INITIAL_DELAY,
            multiplier=self.RETRY_MULTIPLIER,
            max_retries=self.RETRY_MAX_ATTEMPTS,
            time_unit=self.RETRY_TIME_UNIT_SECONDS,
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
