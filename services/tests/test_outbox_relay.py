"""
Reservation Service — outbox relay (Celery beat task body)

Runs relay_pending_events against a synchronous SQLite engine and a fake
sync Redis client.
"""
from datetime import datetime, timezone

import pytest
import redis
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from reservation_service.db.database import Base
from reservation_service.models.reservation import OutboxEvent, OutboxStatus
from reservation_service.schemas.events import RESERVATION_CREATED, ReservationCreatedFact
from reservation_service.tasks.outbox_tasks import relay_pending_events

STREAM = "reservation.order.created"


class FakeSyncRedis:
    def __init__(self, fail_from: int | None = None):
        self.entries = []
        self._fail_from = fail_from

    def xadd(self, name, fields):
        if self._fail_from is not None and len(self.entries) >= self._fail_from:
            raise redis.ConnectionError("Connection refused")
        self.entries.append((name, fields))
        return f"{len(self.entries)}-0"


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'relay.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _seed(engine, *reservation_ids: int):
    with Session(engine) as session:
        for reservation_id in reservation_ids:
            fact = ReservationCreatedFact(
                reservation_id=reservation_id,
                table_id=7,
                party_size=2,
                customer_name="Test User",
                customer_phone="0123456789",
                start_time=datetime(2025, 1, 1, 18, 0, tzinfo=timezone.utc),
            )
            session.add(OutboxEvent(
                event_type=RESERVATION_CREATED,
                aggregate_id=reservation_id,
                payload=fact.to_json(),
            ))
        session.commit()


def _events(engine) -> list[OutboxEvent]:
    with Session(engine) as session:
        return list(session.execute(select(OutboxEvent).order_by(OutboxEvent.id)).scalars().all())


def test_pending_events_are_published_and_marked(engine):
    _seed(engine, 1, 2)
    client = FakeSyncRedis()

    dispatched = relay_pending_events(engine, client, STREAM, batch_size=10, grace_seconds=0)

    assert dispatched == 2
    assert [name for name, _ in client.entries] == [STREAM, STREAM]
    assert all(fields["type"] == RESERVATION_CREATED for _, fields in client.entries)
    assert '"reservationId":1' in client.entries[0][1]["payload"]

    events = _events(engine)
    assert all(e.status == OutboxStatus.DISPATCHED for e in events)
    assert all(e.attempts == 1 for e in events)
    assert all(e.dispatched_at is not None for e in events)


def test_dispatched_events_are_not_sent_twice(engine):
    _seed(engine, 1)
    client = FakeSyncRedis()

    relay_pending_events(engine, client, STREAM, batch_size=10, grace_seconds=0)
    again = relay_pending_events(engine, client, STREAM, batch_size=10, grace_seconds=0)

    assert again == 0
    assert len(client.entries) == 1


def test_broker_failure_leaves_rest_pending(engine):
    _seed(engine, 1, 2, 3)
    client = FakeSyncRedis(fail_from=1)

    dispatched = relay_pending_events(engine, client, STREAM, batch_size=10, grace_seconds=0)

    assert dispatched == 1
    first, second, third = _events(engine)
    assert first.status == OutboxStatus.DISPATCHED
    assert second.status == OutboxStatus.PENDING
    assert second.attempts == 1
    assert "Connection refused" in second.last_error
    assert third.status == OutboxStatus.PENDING
    assert third.attempts == 0


def test_fresh_events_are_left_to_inline_publish(engine):
    _seed(engine, 1)
    client = FakeSyncRedis()

    dispatched = relay_pending_events(engine, client, STREAM, batch_size=10, grace_seconds=3600)

    assert dispatched == 0
    assert client.entries == []


def test_batch_size_limits_one_run(engine):
    _seed(engine, 1, 2, 3)
    client = FakeSyncRedis()

    assert relay_pending_events(engine, client, STREAM, batch_size=2, grace_seconds=0) == 2
    assert relay_pending_events(engine, client, STREAM, batch_size=2, grace_seconds=0) == 1
