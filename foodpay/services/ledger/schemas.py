"""Response schemas for ledger entities (camelCase on the wire)."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LineItemResponse(ApiModel):
    line_item_id: str
    item_id: str
    item_name: str
    quantity: int
    price_at_time: Decimal
    subtotal: Decimal


class PaymentResponse(ApiModel):
    payment_id: str
    order_id: str
    amount: Decimal
    status: str
    remote_intent_id: str | None = None
    remote_payment_id: str | None = None
    method: str | None = None
    transaction_date: datetime | None = None


class OrderResponse(ApiModel):
    order_id: str
    customer_id: str
    total_amount: Decimal
    status: str
    delivery_address: str
    contact_number: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    line_items: list[LineItemResponse]
    payment: PaymentResponse | None = None


class OrderPage(ApiModel):
    items: list[OrderResponse]
    total: int
    page: int
    limit: int


def order_snapshot(order) -> OrderResponse:
    return OrderResponse.model_validate(order)


def order_event_payload(order: OrderResponse) -> dict[str, Any]:
    """JSON-safe dict used in live notifications."""

    return order.model_dump(mode="json", by_alias=True)
