"""
Reservation Service — Reservations API

Booking flow (POST /reservations):
  1. Lock table, check for an overlapping active reservation, commit the
     reservation together with its outbox event
  2. Mark the table reserved (best effort)
  3. Publish reservation.created (best effort, relay retries later)
  4. Return 201 without waiting for the order service
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_service.core.config import get_settings
from reservation_service.core.exceptions import (
    InvalidRequestError,
    ReservationConflictError,
    ReservationNotFoundError,
    TableNotFoundError,
)
from reservation_service.db.database import get_db
from reservation_service.db.reservation_ops import (
    combine_slot_start,
    find_available_tables,
    mark_table_reserved,
    reserve_table,
    update_reservation,
)
from reservation_service.models.reservation import Reservation, ReservationStatus
from reservation_service.mq.publisher import ReservationEventPublisher, dispatch_outbox_event, get_publisher
from reservation_service.schemas.reservation import (
    ReservationCreateRequest,
    ReservationResponse,
    ReservationUpdateRequest,
    TableResponse,
)

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.get("/available-tables", response_model=list[TableResponse])
async def available_tables(
    date: str | None = Query(None, examples=["2025-01-02"]),
    time: str | None = Query(None, examples=["18:00"]),
    party_size: str | None = Query(None, alias="partySize"),
    db: AsyncSession = Depends(get_db),
):
    """Tables free for a 2-hour window starting at date+time."""
    try:
        return await find_available_tables(db, date, time, party_size)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreateRequest,
    db: AsyncSession = Depends(get_db),
    publisher: ReservationEventPublisher = Depends(get_publisher),
):
    try:
        reservation, table, event = await reserve_table(db, payload)
    except TableNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InvalidRequestError, ReservationConflictError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    body = ReservationResponse.model_validate(reservation)

    await mark_table_reserved(db, table)
    await dispatch_outbox_event(db, publisher, event)

    return body


@router.get("", response_model=list[ReservationResponse])
async def list_reservations(
    status_filter: ReservationStatus | None = Query(None, alias="status"),
    date: str | None = Query(None),
    time: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """All reservations by start time. date+time narrows to the 2 hours after that moment."""
    query = select(Reservation).order_by(Reservation.start_time.asc())
    if status_filter:
        query = query.where(Reservation.status == status_filter)
    if date and time:
        try:
            start = combine_slot_start(date, time)
        except InvalidRequestError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        end = start + timedelta(minutes=settings.AVAILABILITY_WINDOW_MINUTES)
        query = query.where(Reservation.start_time >= start, Reservation.start_time < end)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(reservation_id: int, db: AsyncSession = Depends(get_db)):
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return reservation


@router.put("/{reservation_id}", response_model=ReservationResponse)
async def put_reservation(
    reservation_id: int,
    payload: ReservationUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await update_reservation(db, reservation_id, payload)
    except ReservationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ReservationConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reservation(reservation_id: int, db: AsyncSession = Depends(get_db)):
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise HTTPException(status_code=404, detail="Reservation not found")
    await db.delete(reservation)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
