"""
Order Service — reservation.created consumer

Runs as a background task next to the HTTP server. Reads the reservation
stream through a Redis consumer group with manual acknowledgement:

  disconnected → connecting → consuming → (error) → disconnected

After any failure it waits a fixed delay and reconnects, forever,
until stop() is called.

Per entry:
  - malformed payload  → copied to the dead-letter stream, acked, never retried
  - order committed    → acked and deleted from the stream
  - persistence error  → left pending; reclaimed after ORDER_REDELIVERY_IDLE_MS
                          and dead-lettered once delivered more than
                          ORDER_MAX_DELIVERIES times (or acked at once when
                          ack_on_failure is set)
"""
import asyncio
import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError
from redis.exceptions import RedisError, ResponseError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.broker import BrokerConnection
from order_service.core.exceptions import InvalidFactError
from order_service.db.order_ops import materialize_order
from order_service.models.order import Order
from order_service.schemas.events import RESERVATION_CREATED, ReservationCreatedFact

logger = logging.getLogger(__name__)


class ConsumerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONSUMING = "consuming"


def _field(fields: dict[Any, Any] | None, name: str):
    if not fields:
        return None
    value = fields.get(name.encode())
    return value if value is not None else fields.get(name)


def _text(value) -> str:
    return value.decode(errors="replace") if isinstance(value, bytes) else str(value)


def parse_fact(fields: dict[Any, Any] | None) -> ReservationCreatedFact:
    """Raises InvalidFactError for entries that can never become an order."""
    event_type = _field(fields, "type")
    if event_type is not None and _text(event_type) != RESERVATION_CREATED:
        raise InvalidFactError(f"unexpected event type '{_text(event_type)}'")

    raw = _field(fields, "payload")
    if raw is None:
        raise InvalidFactError("missing payload field")

    try:
        return ReservationCreatedFact.model_validate_json(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        raise InvalidFactError(f"invalid payload: {first['msg']}") from exc


class ReservationOrderConsumer:
    def __init__(
        self,
        broker: BrokerConnection,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        stream: str,
        group: str,
        consumer_name: str,
        dead_letter_stream: str,
        reconnect_delay: float = 5.0,
        block_ms: int = 5000,
        batch_size: int = 10,
        redelivery_idle_ms: int = 30000,
        max_deliveries: int = 5,
        ack_on_failure: bool = False,
    ):
        self._broker = broker
        self._session_factory = session_factory
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name
        self.dead_letter_stream = dead_letter_stream
        self.reconnect_delay = reconnect_delay
        self.block_ms = block_ms
        self.batch_size = batch_size
        self.redelivery_idle_ms = redelivery_idle_ms
        self.max_deliveries = max_deliveries
        self.ack_on_failure = ack_on_failure

        self.state = ConsumerState.DISCONNECTED
        self.connect_attempts = 0
        self.orders_created = 0
        self.dead_lettered = 0
        self._stopping = asyncio.Event()

    @classmethod
    def from_settings(cls, broker: BrokerConnection, session_factory, settings) -> "ReservationOrderConsumer":
        return cls(
            broker,
            session_factory,
            stream=settings.RESERVATION_ORDER_QUEUE,
            group=settings.ORDER_CONSUMER_GROUP,
            consumer_name=settings.ORDER_CONSUMER_NAME,
            dead_letter_stream=settings.ORDER_DEAD_LETTER_QUEUE,
            reconnect_delay=settings.ORDER_CONSUMER_RECONNECT_DELAY_SECONDS,
            block_ms=settings.ORDER_CONSUMER_BLOCK_MS,
            batch_size=settings.ORDER_CONSUMER_BATCH_SIZE,
            redelivery_idle_ms=settings.ORDER_REDELIVERY_IDLE_MS,
            max_deliveries=settings.ORDER_MAX_DELIVERIES,
            ack_on_failure=settings.ORDER_ACK_ON_FAILURE,
        )

    def stop(self):
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    # ── Connection lifecycle ─────────────────────────────────────────────────

    async def run(self):
        while not self.stopping:
            self.state = ConsumerState.CONNECTING
            self.connect_attempts += 1
            try:
                client = await self._connect()
                self.state = ConsumerState.CONSUMING
                logger.info(
                    "Consuming %s as %s/%s (attempt %d)",
                    self.stream, self.group, self.consumer_name, self.connect_attempts,
                )
                await self._consume(client)
            except (RedisError, OSError) as exc:
                logger.warning(
                    "Broker connection lost (%s), reconnecting in %.1fs", exc, self.reconnect_delay
                )
            except Exception:
                logger.exception(
                    "Consumer for %s failed, reconnecting in %.1fs", self.stream, self.reconnect_delay
                )

            self.state = ConsumerState.DISCONNECTED
            try:
                await self._broker.reset()
            except (RedisError, OSError) as exc:
                logger.debug("Ignoring error while closing broker connection: %s", exc)

            if not self.stopping:
                await self._sleep(self.reconnect_delay)

        self.state = ConsumerState.DISCONNECTED
        logger.info("Consumer for %s stopped", self.stream)

    async def _sleep(self, seconds: float):
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _connect(self):
        client = self._broker.get()
        await client.ping()
        try:
            await client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        return client

    async def _consume(self, client):
        while not self.stopping:
            await self._reclaim_stale(client)

            response = await client.xreadgroup(
                self.group,
                self.consumer_name,
                {self.stream: ">"},
                count=self.batch_size,
                block=self.block_ms,
            )
            for _stream, messages in response or []:
                for message_id, fields in messages:
                    await self.handle_message(client, message_id, fields)

    # ── Redelivery ────────────────────────────────────────────────────────────

    async def _reclaim_stale(self, client):
        """Take over entries left pending (unacked) longer than the idle timeout."""
        result = await client.xautoclaim(
            self.stream,
            self.group,
            self.consumer_name,
            min_idle_time=self.redelivery_idle_ms,
            start_id="0-0",
            count=self.batch_size,
        )
        claimed = result[1] if len(result) > 1 else []
        for message_id, fields in claimed:
            deliveries = await self._delivery_count(client, message_id)
            if deliveries > self.max_deliveries:
                logger.error(
                    "Message %s delivered %d times, moving to %s",
                    _text(message_id), deliveries, self.dead_letter_stream,
                )
                await self._dead_letter(client, message_id, fields, f"exceeded {self.max_deliveries} deliveries")
                await self._settle(client, message_id)
                continue
            await self.handle_message(client, message_id, fields)

    async def _delivery_count(self, client, message_id) -> int:
        pending = await client.xpending_range(
            self.stream, self.group, min=message_id, max=message_id, count=1
        )
        return int(pending[0]["times_delivered"]) if pending else 0

    async def _settle(self, client, message_id):
        """Ack and delete. One consumer group reads this stream, so an acked entry is never needed again."""
        await client.xack(self.stream, self.group, message_id)
        await client.xdel(self.stream, message_id)

    async def _dead_letter(self, client, message_id, fields, reason: str):
        await client.xadd(
            self.dead_letter_stream,
            {
                "source_id": message_id,
                "reason": reason,
                "payload": _field(fields, "payload") or b"",
            },
        )
        self.dead_lettered += 1

    # ── Per-message handling ──────────────────────────────────────────────────

    async def handle_message(self, client, message_id, fields) -> Order | None:
        try:
            fact = parse_fact(fields)
        except InvalidFactError as exc:
            logger.error("Dropping poison message %s from %s: %s", _text(message_id), self.stream, exc)
            await self._dead_letter(client, message_id, fields, str(exc))
            await self._settle(client, message_id)
            return None

        try:
            async with self._session_factory() as db:
                order, created = await materialize_order(db, fact)
        except Exception:
            logger.exception(
                "Could not create order for reservation %s (message %s)",
                fact.reservation_id, _text(message_id),
            )
            if self.ack_on_failure:
                await self._settle(client, message_id)
            return None

        await self._settle(client, message_id)
        if created:
            self.orders_created += 1
        return order
