"""
Order Service — orders API and table release
"""
import json
from decimal import Decimal

import pytest

from order_service.models.order import Order, OrderStatus, OrderType


async def _seed_order(order_db, **values) -> int:
    defaults = dict(order_type=OrderType.DINE_IN, status=OrderStatus.PENDING, total=Decimal("0"))
    defaults.update(values)
    async with order_db() as session:
        order = Order(**defaults)
        session.add(order)
        await session.commit()
        return order.id


@pytest.mark.asyncio
async def test_completing_dine_in_order_releases_table(order_client, order_db, table_calls):
    order_id = await _seed_order(order_db, table_id=5, reservation_id=1)

    r = await order_client.patch(f"/orders/{order_id}/status", json={"status": "completed"})

    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert len(table_calls) == 1
    request = table_calls[0]
    assert request.method == "PATCH"
    assert request.url.path == "/tables/5/status"
    assert json.loads(request.content) == {"status": "available"}


@pytest.mark.asyncio
async def test_cancelling_releases_table_once(order_client, order_db, table_calls):
    order_id = await _seed_order(order_db, table_id=5, reservation_id=2)

    await order_client.patch(f"/orders/{order_id}/status", json={"status": "cancelled"})
    await order_client.patch(f"/orders/{order_id}/status", json={"status": "completed"})

    assert len(table_calls) == 1


@pytest.mark.asyncio
async def test_intermediate_status_keeps_table(order_client, order_db, table_calls):
    order_id = await _seed_order(order_db, table_id=5, reservation_id=3)

    r = await order_client.patch(f"/orders/{order_id}/status", json={"status": "preparing"})

    assert r.json()["status"] == "preparing"
    assert table_calls == []


@pytest.mark.asyncio
async def test_order_without_table_makes_no_call(order_client, order_db, table_calls):
    order_id = await _seed_order(order_db, order_type=OrderType.TAKEAWAY)

    r = await order_client.patch(f"/orders/{order_id}/status", json={"status": "completed"})

    assert r.status_code == 200
    assert table_calls == []


@pytest.mark.asyncio
async def test_table_release_failure_does_not_fail_request(
    order_client, order_db, table_calls, table_service_status
):
    table_service_status["code"] = 503
    order_id = await _seed_order(order_db, table_id=5, reservation_id=4)

    r = await order_client.patch(f"/orders/{order_id}/status", json={"status": "completed"})

    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert len(table_calls) == 1


@pytest.mark.asyncio
async def test_unknown_order_is_404(order_client):
    r = await order_client.get("/orders/404")
    assert r.status_code == 404

    r = await order_client.patch("/orders/404/status", json={"status": "completed"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_invalid_status_is_rejected(order_client, order_db):
    order_id = await _seed_order(order_db, table_id=5, reservation_id=6)

    r = await order_client.patch(f"/orders/{order_id}/status", json={"status": "eaten"})

    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"


@pytest.mark.asyncio
async def test_list_filters_by_reservation(order_client, order_db):
    await _seed_order(order_db, table_id=5, reservation_id=10)
    wanted = await _seed_order(order_db, table_id=6, reservation_id=11)

    r = await order_client.get("/orders", params={"reservationId": 11})

    assert r.status_code == 200
    body = r.json()
    assert [o["id"] for o in body] == [wanted]
    assert body[0]["orderType"] == "dine-in"
    assert body[0]["reservationId"] == 11
    assert body[0]["total"] == 0


@pytest.mark.asyncio
async def test_list_newest_first_and_status_filter(order_client, order_db):
    first = await _seed_order(order_db, reservation_id=20)
    second = await _seed_order(order_db, reservation_id=21)
    await _seed_order(order_db, reservation_id=22, status=OrderStatus.COMPLETED)

    r = await order_client.get("/orders", params={"status": "pending"})

    assert [o["id"] for o in r.json()] == [second, first]
