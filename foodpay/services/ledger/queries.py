"""Read-side lookups over orders and their payment records."""

from sqlalchemy import func, select

from foodpay.common.errors import Conflict, NotFound
from foodpay.common.state_machine import OrderStatus
from foodpay.services.ledger.models import Order, PaymentRecord
from foodpay.services.ledger.schemas import OrderPage, OrderResponse, PaymentResponse, order_snapshot


class OrderQueries:
    """Order and payment reads, scoped to the owning customer when one is given."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def get_order(self, order_id: str, customer_id: str | None = None) -> OrderResponse:
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found")
            if customer_id is not None and order.customer_id != customer_id:
                raise Conflict("Order belongs to another customer")
            return order_snapshot(order)

    def can_view(self, order_id: str, customer_id: str | None, is_admin: bool) -> bool:
        """Whether a live subscriber may join this order's channel."""

        with self.session_factory() as db:
            owner = db.scalar(select(Order.customer_id).where(Order.order_id == order_id))
        if owner is None:
            return False
        return is_admin or owner == customer_id

    def list_customer_orders(self, customer_id: str, page: int = 1, limit: int = 20) -> OrderPage:
        return self._page(Order.customer_id == customer_id, page, limit)

    def list_orders(self, page: int = 1, limit: int = 20, status: str | None = None) -> OrderPage:
        """Admin listing; unpaid PENDING orders are hidden unless asked for."""

        if status is not None:
            condition = Order.status == OrderStatus(status).value
        else:
            condition = Order.status != OrderStatus.PENDING.value
        return self._page(condition, page, limit)

    def get_payment(self, order_id: str, customer_id: str | None = None) -> PaymentResponse:
        with self.session_factory() as db:
            payment = db.execute(
                select(PaymentRecord).where(PaymentRecord.order_id == order_id)
            ).scalar_one_or_none()
            if payment is None:
                raise NotFound("Payment not found")
            if customer_id is not None and payment.order.customer_id != customer_id:
                raise Conflict("Payment belongs to another customer")
            return PaymentResponse.model_validate(payment)

    def _page(self, condition, page: int, limit: int) -> OrderPage:
        with self.session_factory() as db:
            total = db.scalar(select(func.count()).select_from(Order).where(condition))
            rows = (
                db.execute(
                    select(Order)
                    .where(condition)
                    .order_by(Order.created_at.desc(), Order.order_id)
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return OrderPage(
                items=[order_snapshot(row) for row in rows],
                total=int(total or 0),
                page=page,
                limit=limit,
            )
