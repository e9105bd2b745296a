"""
Reservation Service — Pydantic Schemas

JSON bodies use camelCase; Python attributes stay snake_case.
"""
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from reservation_service.models.reservation import ReservationStatus, TableStatus

# Statuses a client may book straight into
BOOKABLE_STATUSES = {
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.CANCELLED,
    ReservationStatus.COMPLETED,
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreateRequest(CamelModel):
    customer_name: str = Field(..., min_length=1, max_length=255, examples=["Test User"])
    customer_phone: str = Field(..., min_length=1, max_length=32, examples=["0123456789"])
    table_number: int = Field(..., ge=1)
    party_size: int = Field(..., ge=1)
    reservation_date: date = Field(..., examples=["2025-01-01"])
    reservation_time: str = Field(..., pattern=r"^\d{2}:\d{2}$", examples=["18:00"])
    duration_minutes: int | None = Field(None, ge=1)
    notes: str | None = None
    status: ReservationStatus = ReservationStatus.PENDING

    @field_validator("status")
    @classmethod
    def _bookable(cls, value: ReservationStatus) -> ReservationStatus:
        if value not in BOOKABLE_STATUSES:
            raise ValueError(f"Invalid status '{value.value}'")
        return value


class ReservationUpdateRequest(CamelModel):
    status: ReservationStatus | None = None
    notes: str | None = None


class ReservationResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    customer_name: str
    customer_phone: str
    table_id: int
    party_size: int
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TableResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    table_number: int
    capacity: int
    zone: str
    status: TableStatus


class TableStatusUpdate(BaseModel):
    status: TableStatus


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
