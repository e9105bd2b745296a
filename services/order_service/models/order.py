"""
Order Service — Order DB models

[TRANSACTIONAL DATA] orders are created by checkout, by staff, or from a
reservation.created fact (dine-in, one per reservation).
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import String, Integer, Numeric, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
from order_service.db.database import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


class OrderType(str, PyEnum):
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Reaching one of these frees the dine-in table
TABLE_RELEASING_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class Order(Base):
    """
    [TRANSACTIONAL DATA]
    reservation_id is unique: a redelivered fact never yields a second order.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_type: Mapped[OrderType] = mapped_column(
        Enum(OrderType, name="order_type", values_callable=_values),
        default=OrderType.DINE_IN,
        nullable=False,
    )
    table_id: Mapped[int | None] = mapped_column(Integer, index=True, nullable=True)
    reservation_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", values_callable=_values),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} type={self.order_type} reservation={self.reservation_id} status={self.status}>"
