"""
Reservation Service — Database models

[CONFIG DATA]        tables, provisioned once, never deleted by booking
[TRANSACTIONAL DATA] reservations, outbox_events
"""
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, Text, Enum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from reservation_service.db.database import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


class TableStatus(str, PyEnum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"
    DISABLED = "disabled"


class ReservationStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Reservations in these states hold their table for [start_time, end_time)
ACTIVE_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class OutboxStatus(str, PyEnum):
    PENDING = "pending"
    DISPATCHED = "dispatched"


class Table(Base):
    """
    [CONFIG DATA] dining tables.
    Row is locked (SELECT ... FOR UPDATE) while a reservation is being booked on it.
    """
    __tablename__ = "tables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_number: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    zone: Mapped[str] = mapped_column(String(50), nullable=False, default="indoor")
    status: Mapped[TableStatus] = mapped_column(
        Enum(TableStatus, name="table_status", values_callable=_values),
        default=TableStatus.AVAILABLE,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<Table number={self.table_number} capacity={self.capacity} status={self.status}>"


class Reservation(Base):
    """
    [TRANSACTIONAL DATA]
    No two active reservations on one table may overlap.
    """
    __tablename__ = "reservations"
    __table_args__ = (Index("ix_reservations_table_window", "table_id", "start_time", "end_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    table_id: Mapped[int] = mapped_column(ForeignKey("tables.id"), nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status", values_callable=_values),
        default=ReservationStatus.PENDING,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    table: Mapped[Table] = relationship(back_populates="reservations")


class OutboxEvent(Base):
    """
    [TRANSACTIONAL DATA] committed together with the reservation it describes.
    The inline publish or the Celery relay moves it to DISPATCHED.
    """
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    aggregate_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus, name="outbox_status", values_callable=_values),
        default=OutboxStatus.PENDING,
        index=True,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
