"""
Reservation Service — Event schemas

Facts are immutable records of something that already happened.
They travel over the Redis stream as camelCase JSON.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

RESERVATION_CREATED = "reservation.created"


class ReservationCreatedFact(BaseModel):
    """A reservation was committed."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    reservation_id: int
    table_id: int
    party_size: int
    customer_name: str
    customer_phone: str
    start_time: datetime

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
