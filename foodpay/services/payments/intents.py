"""Payment intent creation for existing orders."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update

from foodpay.common.errors import (
    Conflict,
    InternalError,
    NotFound,
    ServiceUnavailable,
    ValidationError,
)
from foodpay.common.logging import logger, order_id_ctx
from foodpay.common.metrics import payment_intents_total
from foodpay.common.state_machine import PaymentStatus
from foodpay.services.catalog.lookup import CENTS
from foodpay.services.ledger.models import Order, PaymentRecord
from foodpay.services.payments.gateway import (
    GatewayError,
    GatewayRejected,
    PaymentGateway,
)


GATEWAY_UNAVAILABLE = "payment gateway unavailable"
# Gateway receipts are capped at 40 characters.
RECEIPT_MAX_LENGTH = 40


@dataclass(frozen=True)
class IntentDescriptor:
    remote_intent_id: str
    amount: Decimal
    currency: str
    gateway_public_key: str


def receipt_for(order_id: str) -> str:
    return order_id.replace("-", "")[:RECEIPT_MAX_LENGTH]


class PaymentIntentService:
    """Opens a gateway-side order and correlates it to the local payment record."""

    def __init__(
        self,
        session_factory,
        gateway: PaymentGateway,
        currency: str = "INR",
        service_name: str = "foodpay-api",
        clock=None,
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway
        self.currency = currency
        self.service_name = service_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def create_intent(
        self,
        order_id: str,
        amount: Decimal | None = None,
        customer_id: str | None = None,
    ) -> IntentDescriptor:
        order_id_ctx.set(order_id)
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found")
            if customer_id is not None and order.customer_id != customer_id:
                raise Conflict("Order belongs to another customer")
            payment = order.payment
            if payment is None:
                raise InternalError(f"Order {order_id} has no payment record")
            if payment.status in (PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value):
                payment_intents_total.labels(service=self.service_name, outcome="conflict").inc()
                raise Conflict("Payment already completed for this order")
            recorded_amount = Decimal(payment.amount).quantize(CENTS)

        if amount is not None and Decimal(amount).quantize(CENTS) != recorded_amount:
            raise ValidationError("Amount does not match the order total")
        if not self.gateway.configured:
            payment_intents_total.labels(service=self.service_name, outcome="unconfigured").inc()
            raise ServiceUnavailable(GATEWAY_UNAVAILABLE)

        # No transaction is held open across the gateway round-trip.
        try:
            remote = self.gateway.create_remote_order(
                recorded_amount,
                self.currency,
                receipt_for(order_id),
                notes={"orderId": order_id},
            )
        except GatewayRejected as exc:
            payment_intents_total.labels(service=self.service_name, outcome="rejected").inc()
            raise ValidationError(f"Payment error: {exc.description}") from exc
        except GatewayError as exc:
            logger.error("payment_intent_gateway_failed order_id=%s error=%s", order_id, exc)
            payment_intents_total.labels(service=self.service_name, outcome="unavailable").inc()
            raise ServiceUnavailable(GATEWAY_UNAVAILABLE) from exc

        with self.session_factory() as db:
            # FAILED -> PENDING lets the customer retry with a fresh intent.
            result = db.execute(
                update(PaymentRecord)
                .where(
                    PaymentRecord.order_id == order_id,
                    PaymentRecord.status.in_((PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)),
                )
                .values(
                    remote_intent_id=remote.id,
                    status=PaymentStatus.PENDING.value,
                    updated_at=self.clock(),
                )
            )
            if result.rowcount != 1:
                raise Conflict("Payment already completed for this order")
            db.commit()

        payment_intents_total.labels(service=self.service_name, outcome="created").inc()
        logger.info("payment_intent_created order_id=%s remote_intent_id=%s", order_id, remote.id)
        return IntentDescriptor(
            remote_intent_id=remote.id,
            amount=recorded_amount,
            currency=self.currency,
            gateway_public_key=self.gateway.public_key,
        )
