"""
Shared fixtures

Each service runs against its own SQLite file (aiosqlite) and a fake Redis
stream client, so the suite needs no running infrastructure.
"""
import os

os.environ.setdefault("METRICS_ENABLED", "false")

from collections import defaultdict

import httpx
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from order_service.clients.table_client import TableClient, get_table_client
from order_service.db.database import Base as OrderBase, get_db as order_get_db
from order_service.main import app as order_app
from reservation_service.db.database import Base as ReservationBase, get_db as reservation_get_db
from reservation_service.main import app as reservation_app
from reservation_service.models.reservation import Table
from reservation_service.mq.publisher import get_publisher


# ─── Fakes ─────────────────────────────────────────────────────────────────────
class FakePublisher:
    """Stands in for ReservationEventPublisher; flip `fail` to simulate a broker outage."""

    def __init__(self):
        self.published = []
        self.fail = False

    async def publish(self, fact):
        if self.fail:
            raise RedisConnectionError("broker unreachable")
        self.published.append(fact)
        return f"{len(self.published)}-0"


def _as_bytes(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode()


class FakeStreamClient:
    """
    In-memory stand-in for the slice of redis.asyncio used by the consumer:
    one consumer group per stream, bytes in and out like the real client.
    """

    def __init__(self):
        self.streams: dict[str, list] = defaultdict(list)
        self.groups: set[tuple[str, str]] = set()
        self.delivered: set[bytes] = set()
        self.pending: dict[bytes, int] = {}
        self.acked: list[bytes] = []
        self.fail_reads = 0
        self.ping_failures = 0
        self.on_idle = None
        self._seq = 0

    async def ping(self):
        if self.ping_failures:
            self.ping_failures -= 1
            raise RedisConnectionError("Connection refused")
        return True

    async def xgroup_create(self, name, groupname, id="$", mkstream=False):
        if (name, groupname) in self.groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        self.groups.add((name, groupname))
        return True

    async def xadd(self, name, fields):
        self._seq += 1
        message_id = f"{self._seq}-0".encode()
        self.streams[name].append((message_id, {_as_bytes(k): _as_bytes(v) for k, v in fields.items()}))
        return message_id

    async def xreadgroup(self, groupname, consumername, streams, count=None, block=None):
        if self.fail_reads:
            self.fail_reads -= 1
            raise RedisConnectionError("Connection reset by peer")

        (name, _), = streams.items()
        undelivered = [entry for entry in self.streams[name] if entry[0] not in self.delivered]
        batch = undelivered[:count] if count else undelivered
        for message_id, _fields in batch:
            self.delivered.add(message_id)
            self.pending[message_id] = 1

        if not batch:
            if self.on_idle is not None:
                await self.on_idle()
            return []
        return [[name.encode(), batch]]

    async def xautoclaim(self, name, groupname, consumername, min_idle_time, start_id="0-0", count=None):
        claimed = []
        if min_idle_time == 0:
            for message_id, fields in self.streams[name]:
                if message_id in self.pending:
                    self.pending[message_id] += 1
                    claimed.append((message_id, fields))
        return [b"0-0", claimed, []]

    async def xpending_range(self, name, groupname, min, max, count, consumername=None, idle=None):
        if min not in self.pending:
            return []
        return [{
            "message_id": min,
            "consumer": b"order-service-1",
            "time_since_delivered": 0,
            "times_delivered": self.pending[min],
        }]

    async def xack(self, name, groupname, *ids):
        for message_id in ids:
            self.pending.pop(message_id, None)
            self.acked.append(message_id)
        return len(ids)

    async def xdel(self, name, *ids):
        before = len(self.streams[name])
        self.streams[name] = [entry for entry in self.streams[name] if entry[0] not in ids]
        return before - len(self.streams[name])

    async def aclose(self):
        pass


class FakeBroker:
    def __init__(self, client: FakeStreamClient):
        self.client = client
        self.resets = 0

    def get(self):
        return self.client

    async def reset(self):
        self.resets += 1

    async def close(self):
        pass


# ─── Reservation service ───────────────────────────────────────────────────────
def _serialize_writers(engine):
    """
    SQLite ignores FOR UPDATE. Opening every transaction with BEGIN IMMEDIATE
    takes the database write lock up front, so concurrent bookings serialize
    the way they do on the PostgreSQL table row lock.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest_asyncio.fixture
async def reservation_db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}")
    _serialize_writers(engine)
    async with engine.begin() as conn:
        await conn.run_sync(ReservationBase.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add_all([
            Table(table_number=1, capacity=2, zone="window"),
            Table(table_number=2, capacity=4, zone="indoor"),
            Table(table_number=3, capacity=6, zone="patio"),
        ])
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest_asyncio.fixture
async def reservation_client(reservation_db, publisher):
    async def _get_db():
        async with reservation_db() as session:
            yield session

    reservation_app.dependency_overrides[reservation_get_db] = _get_db
    reservation_app.dependency_overrides[get_publisher] = lambda: publisher

    transport = httpx.ASGITransport(app=reservation_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://reservation-service") as client:
        yield client

    reservation_app.dependency_overrides.clear()


# ─── Order service ─────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def order_db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(OrderBase.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def table_calls():
    return []


@pytest.fixture
def table_service_status():
    """HTTP status the fake reservation service answers table updates with."""
    return {"code": 200}


@pytest.fixture
def table_client(table_calls, table_service_status):
    def handler(request: httpx.Request) -> httpx.Response:
        table_calls.append(request)
        return httpx.Response(table_service_status["code"], json={"ok": True})

    return TableClient("http://reservation-service", transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def order_client(order_db, table_client):
    async def _get_db():
        async with order_db() as session:
            yield session

    order_app.dependency_overrides[order_get_db] = _get_db
    order_app.dependency_overrides[get_table_client] = lambda: table_client

    transport = httpx.ASGITransport(app=order_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://order-service") as client:
        yield client

    order_app.dependency_overrides.clear()
