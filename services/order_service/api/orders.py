"""
Order Service — Orders API
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_service.clients.table_client import TableClient, get_table_client
from order_service.db.database import get_db
from order_service.models.order import Order, OrderStatus, TABLE_RELEASING_STATUSES
from order_service.schemas.order import OrderResponse, OrderStatusUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: OrderStatus | None = Query(default=None),
    reservation_id: int | None = Query(default=None, alias="reservationId"),
    db: AsyncSession = Depends(get_db),
):
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status is not None:
        query = query.where(Order.status == status)
    if reservation_id is not None:
        query = query.where(Order.reservation_id == reservation_id)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    order = await db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    tables: TableClient = Depends(get_table_client),
):
    """
    Move an order through its lifecycle. Completing or cancelling a dine-in
    order frees its table in the reservation service (best effort).
    """
    order = await db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    previous = order.status
    order.status = payload.status
    await db.commit()
    await db.refresh(order)
    body = OrderResponse.model_validate(order)

    if (
        order.table_id
        and payload.status in TABLE_RELEASING_STATUSES
        and previous not in TABLE_RELEASING_STATUSES
    ):
        await tables.set_table_status(order.table_id, "available")

    logger.info("Order %s: %s -> %s", order_id, previous.value, payload.status.value)
    return body
