"""
Order Service — Configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "order-service"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # ── PostgreSQL (Order DB) ─────────────────────────────────
    POSTGRES_HOST: str = "order-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "orderdb"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    DB_STARTUP_MAX_RETRIES: int = 5
    DB_STARTUP_BASE_DELAY_MS: int = 500
    DB_STARTUP_MAX_DELAY_MS: int = 8000
    DB_STARTUP_JITTER_MS: int = 250

    # ── Redis (reservation event stream) ──────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    BROKER_CONNECT_TIMEOUT: float = 5.0

    # ── Reservation → order consumer ──────────────────────────
    RESERVATION_ORDER_QUEUE: str = "reservation.order.created"
    ORDER_DEAD_LETTER_QUEUE: str = "reservation.order.created.dead-letter"
    ORDER_CONSUMER_GROUP: str = "order-service"
    ORDER_CONSUMER_NAME: str = "order-service-1"
    ORDER_CONSUMER_RECONNECT_DELAY_SECONDS: float = 5.0   # fixed, no backoff
    ORDER_CONSUMER_BLOCK_MS: int = 5000
    ORDER_CONSUMER_BATCH_SIZE: int = 10
    ORDER_REDELIVERY_IDLE_MS: int = 30000
    ORDER_MAX_DELIVERIES: int = 5
    ORDER_ACK_ON_FAILURE: bool = False

    # ── Downstream Services ────────────────────────────────────
    RESERVATION_SERVICE_URL: str = "http://reservation-service:3002"
    HTTP_TIMEOUT_SECONDS: float = 5.0

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
