"""API request schemas for order endpoints."""

from pydantic import Field

from foodpay.common.state_machine import OrderStatus
from foodpay.services.ledger.schemas import ApiModel


class OrderLineRequest(ApiModel):
    item_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class CreateOrderRequest(ApiModel):
    """Cart checkout payload accepted by `POST /orders`."""

    items: list[OrderLineRequest] = Field(min_length=1)
    delivery_address: str = Field(min_length=10, max_length=500)
    contact_number: str = Field(pattern=r"^[6-9]\d{9}$")


class UpdateOrderStatusRequest(ApiModel):
    status: OrderStatus
