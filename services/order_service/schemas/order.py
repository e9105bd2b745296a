"""
Order Service — Pydantic Schemas
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from order_service.models.order import OrderStatus, OrderType


class OrderResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    order_type: OrderType
    table_id: int | None = None
    reservation_id: int | None = None
    user_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    status: OrderStatus
    total: float
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
