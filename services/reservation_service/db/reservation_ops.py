"""
Reservation Service — Booking logic

Overlap rule used everywhere: an active reservation blocks a slot when
    existing.start < slot.end AND existing.end > slot.start

Booking locks the table row (SELECT ... FOR UPDATE) for the whole
check-then-insert, so two requests for the same table run one after the
other and the second sees the first's reservation.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_service.core.config import get_settings
from reservation_service.core.exceptions import (
    InvalidRequestError,
    ReservationConflictError,
    ReservationNotFoundError,
    TableNotFoundError,
)
from reservation_service.models.reservation import (
    ACTIVE_RESERVATION_STATUSES,
    OutboxEvent,
    Reservation,
    Table,
    TableStatus,
)
from reservation_service.schemas.events import RESERVATION_CREATED, ReservationCreatedFact
from reservation_service.schemas.reservation import ReservationCreateRequest, ReservationUpdateRequest

settings = get_settings()
logger = logging.getLogger(__name__)

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def combine_slot_start(day: date | str, clock: str) -> datetime:
    """Build a UTC start time from an ISO date and an HH:mm time."""
    try:
        day_value = day if isinstance(day, date) else date.fromisoformat(day)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError(f"Invalid date '{day}'") from exc

    for fmt in _TIME_FORMATS:
        try:
            clock_value: time = datetime.strptime(clock, fmt).time()
            break
        except (TypeError, ValueError):
            continue
    else:
        raise InvalidRequestError(f"Invalid time '{clock}', expected HH:mm")

    return datetime.combine(day_value, clock_value, tzinfo=timezone.utc)


def lock_table_by_number(table_number: int):
    """Row-locking lookup that serializes bookings on one table until commit."""
    return select(Table).where(Table.table_number == table_number).with_for_update()


def _overlaps(table_id, start: datetime, end: datetime, exclude_id: int | None = None):
    clause = and_(
        Reservation.table_id == table_id,
        Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        Reservation.start_time < end,
        Reservation.end_time > start,
    )
    if exclude_id is not None:
        clause = and_(clause, Reservation.id != exclude_id)
    return clause


async def _has_conflict(
    db: AsyncSession, table_id: int, start: datetime, end: datetime, exclude_id: int | None = None
) -> bool:
    result = await db.execute(
        select(Reservation.id).where(_overlaps(table_id, start, end, exclude_id)).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def find_available_tables(
    db: AsyncSession,
    day: str | None,
    clock: str | None,
    party_size: str | int | None,
) -> list[Table]:
    """
    Tables with enough seats, status AVAILABLE, and no active reservation
    overlapping the fixed window starting at day+clock. Ordered by table number.
    """
    if not day or not clock or party_size in (None, ""):
        raise InvalidRequestError("date, time, partySize required")

    try:
        size = int(party_size)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("partySize must be a positive integer") from exc
    if size < 1:
        raise InvalidRequestError("partySize must be a positive integer")

    start = combine_slot_start(day, clock)
    end = start + timedelta(minutes=settings.AVAILABILITY_WINDOW_MINUTES)

    busy = select(Reservation.id).where(_overlaps(Table.id, start, end)).exists()
    result = await db.execute(
        select(Table)
        .where(Table.capacity >= size, Table.status == TableStatus.AVAILABLE, ~busy)
        .order_by(Table.table_number)
    )
    return list(result.scalars().all())


async def reserve_table(
    db: AsyncSession, request: ReservationCreateRequest
) -> tuple[Reservation, Table, OutboxEvent]:
    """
    Reserve-if-free. Locks the table, re-checks for an overlapping active
    reservation, then commits the reservation together with its outbox event.
    Nothing is written when any step fails.
    """
    result = await db.execute(lock_table_by_number(request.table_number))
    table: Table | None = result.scalar_one_or_none()
    if table is None:
        await db.rollback()
        raise TableNotFoundError("Table not found")

    try:
        start = combine_slot_start(request.reservation_date, request.reservation_time)
    except InvalidRequestError:
        await db.rollback()
        raise

    duration = request.duration_minutes or settings.DEFAULT_DURATION_MINUTES
    end = start + timedelta(minutes=duration)

    if await _has_conflict(db, table.id, start, end):
        await db.rollback()
        raise ReservationConflictError("Table already reserved in this time slot")

    reservation = Reservation(
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        table_id=table.id,
        party_size=request.party_size,
        start_time=start,
        end_time=end,
        status=request.status,
        notes=request.notes or None,
    )
    db.add(reservation)
    await db.flush()

    fact = ReservationCreatedFact(
        reservation_id=reservation.id,
        table_id=table.id,
        party_size=request.party_size,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        start_time=start,
    )
    event = OutboxEvent(
        event_type=RESERVATION_CREATED,
        aggregate_id=reservation.id,
        payload=fact.to_json(),
    )
    db.add(event)
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation %s booked on table %s for %s-%s",
        reservation.id, table.table_number, start.isoformat(), end.isoformat(),
    )
    return reservation, table, event


async def mark_table_reserved(db: AsyncSession, table: Table) -> bool:
    """Best effort: a failure here leaves the reservation in place."""
    try:
        table.status = TableStatus.RESERVED
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Could not mark table %s as reserved: %s", table.table_number, exc)
        return False
    return True


async def update_reservation(
    db: AsyncSession, reservation_id: int, changes: ReservationUpdateRequest
) -> Reservation:
    """
    Apply a status/notes change. Re-activating a reservation re-runs the
    conflict check under the table lock.
    """
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("Reservation not found")

    reactivating = (
        changes.status in ACTIVE_RESERVATION_STATUSES
        and reservation.status not in ACTIVE_RESERVATION_STATUSES
    )
    if reactivating:
        await db.execute(select(Table.id).where(Table.id == reservation.table_id).with_for_update())
        if await _has_conflict(
            db, reservation.table_id, reservation.start_time, reservation.end_time, exclude_id=reservation.id
        ):
            await db.rollback()
            raise ReservationConflictError("Table already reserved in this time slot")

    if changes.status is not None:
        reservation.status = changes.status
    if changes.notes is not None:
        reservation.notes = changes.notes

    await db.commit()
    await db.refresh(reservation)
    return reservation
