"""
Reservation Service — reservation.created publisher

Appends facts to a Redis stream (durable with the broker's AOF/RDB).
The stream is never trimmed here; the order service consumes it through a
consumer group and acknowledges each entry.
"""
import logging
from datetime import datetime, timezone

from fastapi import Request
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_service.core.broker import BrokerConnection
from reservation_service.models.reservation import OutboxEvent, OutboxStatus
from reservation_service.schemas.events import RESERVATION_CREATED, ReservationCreatedFact

logger = logging.getLogger(__name__)


class ReservationEventPublisher:
    def __init__(self, broker: BrokerConnection, stream: str):
        self._broker = broker
        self.stream = stream

    async def publish(self, fact: ReservationCreatedFact) -> str:
        """
        Enqueue one fact. Raises RedisError when the broker is unreachable;
        the cached connection is dropped so the next call reconnects.
        """
        client = self._broker.get()
        try:
            message_id = await client.xadd(
                self.stream,
                {"type": RESERVATION_CREATED, "payload": fact.to_json()},
            )
        except RedisError:
            await self._broker.reset()
            raise

        if isinstance(message_id, bytes):
            message_id = message_id.decode()
        logger.info(
            "Published %s for reservation %s to %s (%s)",
            RESERVATION_CREATED, fact.reservation_id, self.stream, message_id,
        )
        return message_id


def get_publisher(request: Request) -> ReservationEventPublisher:
    return request.app.state.publisher


async def dispatch_outbox_event(
    db: AsyncSession, publisher: ReservationEventPublisher, event: OutboxEvent
) -> bool:
    """
    Publish a freshly committed outbox event right away. On failure the row
    stays PENDING and the Celery relay picks it up later.
    """
    fact = ReservationCreatedFact.model_validate_json(event.payload)
    try:
        await publisher.publish(fact)
    except Exception as exc:
        # Broker trouble must not fail the booking
        logger.warning(
            "Publish for reservation %s failed, left for outbox relay: %s",
            fact.reservation_id, exc,
        )
        return False

    event.status = OutboxStatus.DISPATCHED
    event.dispatched_at = datetime.now(timezone.utc)
    event.attempts += 1
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Outbox event %s published but not marked dispatched: %s", event.id, exc)
    return True
