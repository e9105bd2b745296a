"""
Reservation Service — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "reservation-service"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3002
    LOG_LEVEL: str = "INFO"

    # ── PostgreSQL ────────────────────────────────────────────
    POSTGRES_HOST: str = "reservation-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "reservationdb"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sync_database_url(self) -> str:
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Startup retries before giving up on the database (process exits)
    DB_STARTUP_MAX_RETRIES: int = 5
    DB_STARTUP_BASE_DELAY_MS: int = 500
    DB_STARTUP_MAX_DELAY_MS: int = 8000
    DB_STARTUP_JITTER_MS: int = 250

    # ── Redis (event stream + Celery broker) ──────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def celery_broker_url(self) -> str:
        return self.redis_url

    @property
    def celery_result_backend(self) -> str:
        return self.redis_url

    # ── Reservation events ────────────────────────────────────
    RESERVATION_ORDER_QUEUE: str = "reservation.order.created"
    BROKER_CONNECT_TIMEOUT: float = 5.0

    # ── Outbox relay (Celery beat) ────────────────────────────
    OUTBOX_RELAY_INTERVAL_SECONDS: float = 10.0
    OUTBOX_RELAY_BATCH_SIZE: int = 100
    OUTBOX_RELAY_GRACE_SECONDS: int = 5   # leave fresh rows to the inline publish

    # ── Booking rules ─────────────────────────────────────────
    DEFAULT_DURATION_MINUTES: int = 120
    AVAILABILITY_WINDOW_MINUTES: int = 120

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
