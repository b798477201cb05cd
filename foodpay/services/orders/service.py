"""Order creation.

Prices every cart line against the catalog, then writes the order, its line
items and a PENDING payment record in one transaction. Nothing is announced
here: an unpaid order stays invisible to operational channels until the
payment reconciler confirms it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from foodpay.common.errors import InvalidState, NotFound, ServiceError, ValidationError
from foodpay.common.logging import logger, order_id_ctx
from foodpay.common.metrics import orders_created_total
from foodpay.common.state_machine import OrderStatus, PaymentStatus
from foodpay.services.catalog.lookup import Catalog, LineRejection, PricedLine, price_line
from foodpay.services.ledger.models import Order, OrderLineItem, PaymentRecord
from foodpay.services.ledger.schemas import OrderResponse, order_snapshot


@dataclass(frozen=True)
class CartLine:
    item_id: str
    quantity: int


def rejection_error(rejection: LineRejection) -> ServiceError:
    if rejection.kind == "not_found":
        return NotFound(rejection.reason)
    return InvalidState(rejection.reason)


class OrderService:
    """Materializes orders from cart lines."""

    def __init__(self, session_factory, catalog: Catalog, service_name: str = "foodpay-api") -> None:
        self.session_factory = session_factory
        self.catalog = catalog
        self.service_name = service_name

    def price_cart(self, lines: Iterable[CartLine]) -> list[PricedLine]:
        """Snapshot current prices; the first rejected line aborts the order."""

        priced: list[PricedLine] = []
        for line in lines:
            result = price_line(self.catalog, line.item_id, line.quantity)
            if isinstance(result, LineRejection):
                logger.info(
                    "order_line_rejected item_id=%s kind=%s",
                    result.item_id,
                    result.kind,
                )
                raise rejection_error(result)
            priced.append(result)
        if not priced:
            raise ValidationError("Order must contain at least one item")
        return priced

    def create_order(
        self,
        customer_id: str,
        lines: Iterable[CartLine],
        delivery_address: str,
        contact_number: str,
    ) -> OrderResponse:
        """Create order + line items + PENDING payment atomically."""

        if not customer_id:
            raise ValidationError("Customer is required")
        if not delivery_address or not delivery_address.strip():
            raise ValidationError("Delivery address is required")
        if not contact_number or not contact_number.strip():
            raise ValidationError("Contact number is required")

        priced = self.price_cart(lines)
        total = sum((line.subtotal for line in priced), Decimal("0.00"))

        with self.session_factory() as db:
            order = Order(
                customer_id=customer_id,
                total_amount=total,
                status=OrderStatus.PENDING.value,
                delivery_address=delivery_address.strip(),
                contact_number=contact_number.strip(),
            )
            for position, line in enumerate(priced):
                order.line_items.append(
                    OrderLineItem(
                        position=position,
                        item_id=line.item_id,
                        item_name=line.name,
                        quantity=line.quantity,
                        price_at_time=line.price_at_time,
                        subtotal=line.subtotal,
                    )
                )
            order.payment = PaymentRecord(amount=total, status=PaymentStatus.PENDING.value)
            db.add(order)
            db.commit()
            db.refresh(order)
            snapshot = order_snapshot(order)

        order_id_ctx.set(snapshot.order_id)
        orders_created_total.labels(service=self.service_name).inc()
        logger.info(
            "order_created order_id=%s customer_id=%s total=%s lines=%s",
            snapshot.order_id,
            customer_id,
            total,
            len(priced),
        )
        return snapshot
