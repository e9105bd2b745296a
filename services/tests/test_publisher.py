"""
Reservation Service — stream publisher
"""
from datetime import datetime, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from order_service.mq.consumer import parse_fact
from reservation_service.mq.publisher import ReservationEventPublisher
from reservation_service.schemas.events import ReservationCreatedFact

from conftest import FakeBroker, FakeStreamClient

STREAM = "reservation.order.created"

FACT = ReservationCreatedFact(
    reservation_id=42,
    table_id=7,
    party_size=2,
    customer_name="Test User",
    customer_phone="0123456789",
    start_time=datetime(2025, 1, 1, 18, 0, tzinfo=timezone.utc),
)


class BrokenStreamClient(FakeStreamClient):
    async def xadd(self, name, fields):
        raise RedisConnectionError("Connection refused")


@pytest.mark.asyncio
async def test_publish_appends_fact_to_stream():
    client = FakeStreamClient()
    publisher = ReservationEventPublisher(FakeBroker(client), STREAM)

    message_id = await publisher.publish(FACT)

    assert message_id == "1-0"
    [(_id, fields)] = client.streams[STREAM]
    assert fields[b"type"] == b"reservation.created"
    assert parse_fact(fields).reservation_id == 42


@pytest.mark.asyncio
async def test_publish_failure_drops_connection_and_raises():
    broker = FakeBroker(BrokenStreamClient())
    publisher = ReservationEventPublisher(broker, STREAM)

    with pytest.raises(RedisConnectionError):
        await publisher.publish(FACT)

    assert broker.resets == 1
