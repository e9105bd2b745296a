"""
Order Service — Order creation from reservation facts
"""
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from order_service.models.order import Order, OrderStatus, OrderType
from order_service.schemas.events import ReservationCreatedFact

logger = logging.getLogger(__name__)


async def _order_for_reservation(db: AsyncSession, reservation_id: int) -> Order | None:
    result = await db.execute(select(Order).where(Order.reservation_id == reservation_id))
    return result.scalar_one_or_none()


async def materialize_order(db: AsyncSession, fact: ReservationCreatedFact) -> tuple[Order, bool]:
    """
    Create the pending dine-in order for a reservation.
    Returns (order, created). A redelivered fact returns the existing order
    with created=False.
    """
    existing = await _order_for_reservation(db, fact.reservation_id)
    if existing is not None:
        logger.info("Order %s already exists for reservation %s", existing.id, fact.reservation_id)
        return existing, False

    order = Order(
        order_type=OrderType.DINE_IN,
        table_id=fact.table_id,
        reservation_id=fact.reservation_id,
        customer_name=fact.customer_name,
        customer_phone=fact.customer_phone,
        status=OrderStatus.PENDING,
        total=Decimal("0"),
    )
    db.add(order)
    try:
        await db.commit()
    except IntegrityError:
        # Another consumer committed the same reservation first
        await db.rollback()
        existing = await _order_for_reservation(db, fact.reservation_id)
        if existing is None:
            raise
        return existing, False

    await db.refresh(order)
    logger.info("Created order %s from reservation %s", order.id, fact.reservation_id)
    return order, True
