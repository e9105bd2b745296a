"""
Reservation Service — Celery tasks (outbox relay)

Worker processes these tasks outside the FastAPI container.
Every PENDING outbox row older than the grace period is appended to the
reservation stream and marked DISPATCHED. A row whose publish fails keeps
PENDING and is retried on the next beat tick.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import redis
from sqlalchemy import Engine, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reservation_service.core.celery_app import celery_app
from reservation_service.core.config import get_settings
from reservation_service.models.reservation import OutboxEvent, OutboxStatus

settings = get_settings()
logger = logging.getLogger(__name__)


@lru_cache()
def get_sync_engine() -> Engine:
    # Sync engine for Celery (Celery tasks are not async-native)
    return create_engine(settings.sync_database_url, pool_pre_ping=True)


def relay_pending_events(
    engine: Engine,
    client: redis.Redis,
    stream: str,
    batch_size: int,
    grace_seconds: int,
) -> int:
    """Publish one batch of pending outbox rows. Returns how many were dispatched."""
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=grace_seconds)
    dispatched = 0

    with Session(engine) as session:
        events = session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.PENDING, OutboxEvent.created_at <= cutoff)
            .order_by(OutboxEvent.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        ).scalars().all()

        for event in events:
            event.attempts += 1
            try:
                client.xadd(stream, {"type": event.event_type, "payload": event.payload})
            except redis.RedisError as exc:
                event.last_error = str(exc)[:500]
                logger.warning("Outbox relay stopped at event %s: %s", event.id, exc)
                break
            event.status = OutboxStatus.DISPATCHED
            event.dispatched_at = datetime.now(timezone.utc)
            event.last_error = None
            dispatched += 1

        session.commit()

    if dispatched:
        logger.info("Outbox relay dispatched %d event(s) to %s", dispatched, stream)
    return dispatched


@celery_app.task(
    name="relay_reservation_events",
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    acks_late=True,
)
def relay_reservation_events(self) -> int:
    client = redis.Redis.from_url(settings.redis_url, socket_connect_timeout=settings.BROKER_CONNECT_TIMEOUT)
    try:
        return relay_pending_events(
            get_sync_engine(),
            client,
            stream=settings.RESERVATION_ORDER_QUEUE,
            batch_size=settings.OUTBOX_RELAY_BATCH_SIZE,
            grace_seconds=settings.OUTBOX_RELAY_GRACE_SECONDS,
        )
    except SQLAlchemyError as exc:
        logger.exception("Outbox relay failed")
        raise self.retry(exc=exc)
    finally:
        client.close()
