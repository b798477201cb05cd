"""Order lifecycle after payment: operator progression and cancellation.

PENDING -> CONFIRMED belongs to the payment reconciler. Everything after that
is driven here, one guarded step at a time, and announced after commit.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update

from foodpay.common.errors import Conflict, InvalidState, NotFound, ValidationError
from foodpay.common.logging import logger, order_id_ctx
from foodpay.common.metrics import order_transitions_total
from foodpay.common.state_machine import (
    CANCELLABLE_ORDER_STATES,
    OrderStatus,
    PaymentStatus,
    validate_order_transition,
    validate_payment_transition,
)
from foodpay.services.ledger.models import Order, PaymentRecord
from foodpay.services.ledger.schemas import OrderResponse, order_snapshot
from foodpay.services.notification.fanout import NotificationFanout


@dataclass(frozen=True)
class Actor:
    """Caller identity resolved by the API layer."""

    customer_id: str | None = None
    is_admin: bool = False


class OrderStatusService:
    """Applies admin/customer driven order transitions."""

    def __init__(
        self,
        session_factory,
        fanout: NotificationFanout,
        service_name: str = "foodpay-api",
        clock=None,
    ) -> None:
        self.session_factory = session_factory
        self.fanout = fanout
        self.service_name = service_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def update_status(self, order_id: str, new_status) -> OrderResponse:
        """Advance an order one step along the fulfilment chain (admin only)."""

        try:
            target = OrderStatus(new_status)
        except ValueError as exc:
            raise ValidationError(f"Invalid order status: {new_status}") from exc
        if target is OrderStatus.CANCELLED:
            return self.cancel_order(order_id, Actor(is_admin=True))
        if target is OrderStatus.CONFIRMED:
            raise InvalidState("Orders are confirmed by payment verification only")

        order_id_ctx.set(order_id)
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found")
            validate_order_transition(order.status, target)
            now = self._transition(db, order, target)
            db.commit()
            snapshot = order_snapshot(order)

        logger.info("order_status_updated order_id=%s status=%s", order_id, target.value)
        self.fanout.order_update(order_id, target.value, f"Order status updated to {target.value}", now)
        return snapshot

    def cancel_order(self, order_id: str, actor: Actor) -> OrderResponse:
        """Cancel a non-terminal order; a completed payment is marked REFUNDED."""

        order_id_ctx.set(order_id)
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found")
            if not actor.is_admin and order.customer_id != actor.customer_id:
                raise Conflict("Order belongs to another customer")
            if order.status not in CANCELLABLE_ORDER_STATES:
                raise InvalidState("Order cannot be cancelled at this stage")

            now = self._transition(db, order, OrderStatus.CANCELLED)
            payment = order.payment
            refunded = False
            if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
                validate_payment_transition(payment.status, PaymentStatus.REFUNDED)
                result = db.execute(
                    update(PaymentRecord)
                    .where(
                        PaymentRecord.payment_id == payment.payment_id,
                        PaymentRecord.status == PaymentStatus.COMPLETED.value,
                    )
                    .values(status=PaymentStatus.REFUNDED.value, updated_at=now)
                )
                if result.rowcount != 1:
                    raise Conflict(f"Payment for order {order_id} changed concurrently")
                refunded = True
            db.commit()
            db.refresh(order)
            snapshot = order_snapshot(order)

        # TODO: call the gateway refund API once refunds are executed rather than only marked.
        logger.info(
            "order_cancelled order_id=%s by_admin=%s payment_refunded=%s",
            order_id,
            actor.is_admin,
            refunded,
        )
        message = "Order has been cancelled"
        if refunded:
            message = "Order has been cancelled, payment marked for refund"
        self.fanout.order_update(order_id, OrderStatus.CANCELLED.value, message, now)
        return snapshot

    def _transition(self, db, order: Order, new_status: OrderStatus) -> datetime:
        """Apply one order transition guarded on the status we read."""

        from_status = order.status
        now = self.clock()
        result = db.execute(
            update(Order)
            .where(Order.order_id == order.order_id, Order.status == from_status)
            .values(status=new_status.value, updated_at=now)
        )
        if result.rowcount != 1:
            raise Conflict(f"Order {order.order_id} changed concurrently (expected {from_status})")
        order.status = new_status.value
        order_transitions_total.labels(service=self.service_name, to_status=new_status.value).inc()
        return now
