"""
Reservation Service — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from reservation_service.core.broker import BrokerConnection
from reservation_service.core.config import get_settings
from reservation_service.core.errors import register_exception_handlers
from reservation_service.core.retry import with_backoff_retry
from reservation_service.db.database import engine, Base
from reservation_service.mq.publisher import ReservationEventPublisher
from reservation_service.api import reservations, tables, health

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)


@with_backoff_retry(OSError, SQLAlchemyError)
async def init_db():
    # Alembic handles migrations in production
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    broker = BrokerConnection(settings.redis_url, connect_timeout=settings.BROKER_CONNECT_TIMEOUT)
    app.state.broker = broker
    app.state.publisher = ReservationEventPublisher(broker, settings.RESERVATION_ORDER_QUEUE)
    logger.info("Publishing reservation events to stream %s", settings.RESERVATION_ORDER_QUEUE)
    yield
    await broker.close()
    await engine.dispose()


app = FastAPI(
    title="Reservation Service",
    description="Table booking with conflict-checked reservations and reservation.created events.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])

register_exception_handlers(app)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(reservations.router)
app.include_router(tables.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
