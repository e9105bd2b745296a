"""
Order Service — FastAPI application entrypoint

Serves the orders API and runs the reservation.created consumer as a
background task for the lifetime of the process.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from order_service.clients.table_client import TableClient
from order_service.core.broker import BrokerConnection
from order_service.core.config import get_settings
from order_service.core.errors import register_exception_handlers
from order_service.core.retry import with_backoff_retry
from order_service.db.database import engine, Base, SessionLocal
from order_service.mq.consumer import ReservationOrderConsumer
from order_service.api import orders, health

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
    consumer = ReservationOrderConsumer.from_settings(broker, SessionLocal, settings)
    app.state.broker = broker
    app.state.consumer = consumer
    app.state.table_client = TableClient(settings.RESERVATION_SERVICE_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)

    task = asyncio.create_task(consumer.run(), name="reservation-order-consumer")
    yield

    consumer.stop()
    try:
        await asyncio.wait_for(task, timeout=settings.ORDER_CONSUMER_BLOCK_MS / 1000 + 1)
    except asyncio.TimeoutError:
        logger.warning("Consumer did not stop in time, cancelled")
    await broker.close()
    await engine.dispose()


app = FastAPI(
    title="Order Service",
    description="Orders, including dine-in orders materialized from reservation.created events.",
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

app.include_router(orders.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
