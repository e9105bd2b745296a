"""
Order Service — Incoming event schemas
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

RESERVATION_CREATED = "reservation.created"


class ReservationCreatedFact(BaseModel):
    """A reservation was committed in the reservation service."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    reservation_id: int
    table_id: int
    party_size: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    start_time: datetime | None = None
