"""Payment reconciliation.

Two independent entry points can report the same capture: the customer's
client-side verification and the gateway's webhook. Both funnel into one
guarded conditional update on the payment record, so whichever arrives first
performs PENDING -> COMPLETED and the other observes zero affected rows and
turns into a no-op. Notifications go out only after commit and only from the
caller that actually made the transition.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update

from foodpay.common.errors import Conflict, NotFound, SignatureInvalid
from foodpay.common.logging import log_context, logger, order_id_ctx
from foodpay.common.metrics import (
    duplicate_webhooks_skipped_total,
    order_transitions_total,
    payment_confirmations_total,
    payment_failures_total,
    signature_failures_total,
    webhook_events_total,
)
from foodpay.common.signatures import verify_payment_signature, verify_webhook_signature
from foodpay.common.state_machine import OrderStatus, PaymentStatus, payment_sources
from foodpay.common.tracing import payment_span
from foodpay.services.ledger.models import Order, PaymentRecord
from foodpay.services.ledger.schemas import OrderResponse, order_event_payload, order_snapshot
from foodpay.services.notification.fanout import NotificationFanout
from foodpay.services.payments.dedupe import WebhookDeliveryCache
from foodpay.services.payments.webhook_events import (
    PaymentCaptured,
    PaymentFailed,
    UnknownEvent,
    decode_webhook_event,
)


VERIFICATION_FAILED = "payment verification failed"
CLIENT_PAYMENT_METHOD = "razorpay"

CAPTURED = "captured"
ALREADY_COMPLETED = "already_completed"
REFUNDED = "refunded"


@dataclass(frozen=True)
class ConfirmationResult:
    order_id: str
    payment_status: str
    order_status: str
    transitioned: bool


@dataclass(frozen=True)
class _Capture:
    outcome: str
    customer_id: str
    order: OrderResponse


class PaymentReconciler:
    def __init__(
        self,
        session_factory,
        fanout: NotificationFanout,
        client_secret: str,
        webhook_secret: str,
        delivery_cache: WebhookDeliveryCache | None = None,
        service_name: str = "foodpay-api",
        clock=None,
    ) -> None:
        self.session_factory = session_factory
        self.fanout = fanout
        self.client_secret = client_secret
        self.webhook_secret = webhook_secret
        self.delivery_cache = delivery_cache
        self.service_name = service_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def confirm_payment(
        self,
        remote_intent_id: str,
        remote_payment_id: str,
        provided_signature: str,
        order_id: str,
        customer_id: str | None = None,
    ) -> ConfirmationResult:
        """Client-side verification of a completed checkout."""

        with log_context(order_id=order_id), payment_span("payment.verify", order_id=order_id):
            if not verify_payment_signature(
                self.client_secret, remote_intent_id, remote_payment_id, provided_signature
            ):
                signature_failures_total.labels(service=self.service_name, source="verify").inc()
                logger.warning("payment_signature_rejected order_id=%s", order_id)
                raise SignatureInvalid(VERIFICATION_FAILED)

            with self.session_factory() as db:
                payment = db.execute(
                    select(PaymentRecord).where(PaymentRecord.order_id == order_id)
                ).scalar_one_or_none()
                if payment is None:
                    raise NotFound("Order not found")
                if customer_id is not None and payment.order.customer_id != customer_id:
                    raise Conflict("Order belongs to another customer")
                if payment.remote_intent_id != remote_intent_id:
                    signature_failures_total.labels(service=self.service_name, source="verify").inc()
                    logger.warning("payment_intent_mismatch order_id=%s", order_id)
                    raise SignatureInvalid(VERIFICATION_FAILED)

                capture = self._capture(
                    db,
                    payment.payment_id,
                    order_id,
                    remote_payment_id=remote_payment_id,
                    signature=provided_signature,
                    method=CLIENT_PAYMENT_METHOD,
                    transaction_date=self.clock(),
                )

            payment_confirmations_total.labels(
                service=self.service_name, source="verify", outcome=capture.outcome
            ).inc()
            self._announce(capture)
            payment_status = (
                capture.order.payment.status if capture.order.payment else PaymentStatus.COMPLETED.value
            )
            return ConfirmationResult(
                order_id=order_id,
                payment_status=payment_status,
                order_status=capture.order.status,
                transitioned=capture.outcome == CAPTURED,
            )

    def handle_webhook_event(
        self,
        raw_payload: bytes,
        signature_header: str | None,
        delivery_id: str | None = None,
    ) -> str:
        """Process one gateway webhook delivery and return its outcome."""

        with log_context(delivery_id=delivery_id), payment_span("payment.webhook", delivery_id=delivery_id):
            if not verify_webhook_signature(self.webhook_secret, raw_payload, signature_header or ""):
                signature_failures_total.labels(service=self.service_name, source="webhook").inc()
                logger.warning("webhook_signature_rejected delivery_id=%s", delivery_id)
                raise SignatureInvalid("Invalid webhook signature")

            if delivery_id and self.delivery_cache is not None and self.delivery_cache.seen(delivery_id):
                duplicate_webhooks_skipped_total.labels(service=self.service_name).inc()
                logger.info("webhook_duplicate_skipped delivery_id=%s", delivery_id)
                return "duplicate"

            event = decode_webhook_event(raw_payload)
            if isinstance(event, PaymentCaptured):
                event_type, outcome = "payment.captured", self._on_captured(event)
            elif isinstance(event, PaymentFailed):
                event_type, outcome = "payment.failed", self._on_failed(event)
            elif isinstance(event, UnknownEvent):
                logger.info("webhook_event_ignored event_type=%s", event.event_type)
                event_type, outcome = "unknown", "ignored"
            else:
                raise TypeError(f"unhandled webhook event {event!r}")

            webhook_events_total.labels(service=self.service_name, event_type=event_type).inc()
            if delivery_id and self.delivery_cache is not None:
                self.delivery_cache.remember(delivery_id)
            logger.info("webhook_processed event_type=%s outcome=%s", event_type, outcome)
            return outcome

    def _on_captured(self, event: PaymentCaptured) -> str:
        with self.session_factory() as db:
            payment = db.execute(
                select(PaymentRecord).where(PaymentRecord.remote_intent_id == event.remote_intent_id)
            ).scalar_one_or_none()
            if payment is None:
                logger.warning("webhook_unknown_intent remote_intent_id=%s", event.remote_intent_id)
                return "unknown_intent"
            order_id_ctx.set(payment.order_id)
            capture = self._capture(
                db,
                payment.payment_id,
                payment.order_id,
                remote_payment_id=event.remote_payment_id,
                signature=None,
                method=event.method,
                transaction_date=event.captured_at,
            )

        payment_confirmations_total.labels(
            service=self.service_name, source="webhook", outcome=capture.outcome
        ).inc()
        self._announce(capture)
        return capture.outcome

    def _on_failed(self, event: PaymentFailed) -> str:
        with self.session_factory() as db:
            payment = db.execute(
                select(PaymentRecord).where(PaymentRecord.remote_intent_id == event.remote_intent_id)
            ).scalar_one_or_none()
            if payment is None:
                logger.warning("webhook_unknown_intent remote_intent_id=%s", event.remote_intent_id)
                return "unknown_intent"
            order_id = payment.order_id
            customer_id = payment.order.customer_id
            order_id_ctx.set(order_id)
            # A late failure must never downgrade a completed payment.
            result = db.execute(
                update(PaymentRecord)
                .where(
                    PaymentRecord.payment_id == payment.payment_id,
                    PaymentRecord.status.in_(payment_sources(PaymentStatus.FAILED)),
                )
                .values(
                    status=PaymentStatus.FAILED.value,
                    remote_payment_id=event.remote_payment_id,
                    updated_at=self.clock(),
                )
            )
            if result.rowcount != 1:
                db.rollback()
                logger.info("payment_failure_ignored order_id=%s", order_id)
                return "unchanged"
            db.commit()

        payment_failures_total.labels(service=self.service_name).inc()
        logger.info("payment_failed order_id=%s reason=%s", order_id, event.reason)
        self.fanout.payment_update(
            customer_id, order_id, PaymentStatus.FAILED.value, "Payment failed. Please try again."
        )
        return "failed"

    def _capture(
        self,
        db,
        payment_id: str,
        order_id: str,
        remote_payment_id: str,
        signature: str | None,
        method: str | None,
        transaction_date: datetime,
    ) -> _Capture:
        """PENDING -> COMPLETED plus the order confirmation, in one transaction."""

        now = self.clock()
        result = db.execute(
            update(PaymentRecord)
            .where(
                PaymentRecord.payment_id == payment_id,
                PaymentRecord.status.in_(payment_sources(PaymentStatus.COMPLETED)),
            )
            .values(
                status=PaymentStatus.COMPLETED.value,
                remote_payment_id=remote_payment_id,
                signature=signature,
                method=method,
                transaction_date=transaction_date,
                updated_at=now,
            )
        )
        if result.rowcount != 1:
            db.rollback()
            current = db.scalar(select(PaymentRecord.status).where(PaymentRecord.payment_id == payment_id))
            if current != PaymentStatus.COMPLETED.value:
                raise Conflict(f"Payment for order {order_id} is {current} and cannot be completed")
            logger.info("payment_already_completed order_id=%s", order_id)
            order = db.get(Order, order_id, populate_existing=True)
            return _Capture(ALREADY_COMPLETED, order.customer_id, order_snapshot(order))

        confirmed = db.execute(
            update(Order)
            .where(Order.order_id == order_id, Order.status == OrderStatus.PENDING.value)
            .values(status=OrderStatus.CONFIRMED.value, updated_at=now)
        )
        outcome = CAPTURED
        if confirmed.rowcount != 1:
            order_status = db.scalar(select(Order.status).where(Order.order_id == order_id))
            if order_status != OrderStatus.CANCELLED.value:
                db.rollback()
                raise Conflict(f"Order {order_id} is {order_status} and cannot be confirmed")
            # Money arrived for an order that no longer exists operationally.
            db.execute(
                update(PaymentRecord)
                .where(
                    PaymentRecord.payment_id == payment_id,
                    PaymentRecord.status == PaymentStatus.COMPLETED.value,
                )
                .values(status=PaymentStatus.REFUNDED.value, updated_at=now)
            )
            outcome = REFUNDED
        db.commit()

        if outcome == CAPTURED:
            order_transitions_total.labels(service=self.service_name, to_status=OrderStatus.CONFIRMED.value).inc()
        logger.info("payment_captured order_id=%s outcome=%s", order_id, outcome)
        order = db.get(Order, order_id, populate_existing=True)
        return _Capture(outcome, order.customer_id, order_snapshot(order))

    def _announce(self, capture: _Capture) -> None:
        order_id = capture.order.order_id
        if capture.outcome == REFUNDED:
            self.fanout.payment_update(
                capture.customer_id,
                order_id,
                PaymentStatus.REFUNDED.value,
                "Order was cancelled before payment completed, payment marked for refund",
            )
            return
        if capture.outcome != CAPTURED:
            return
        self.fanout.payment_update(
            capture.customer_id, order_id, PaymentStatus.COMPLETED.value, "Payment successful"
        )
        self.fanout.order_update(
            order_id,
            OrderStatus.CONFIRMED.value,
            "Order confirmed, preparing your food",
            capture.order.updated_at,
        )
        self.fanout.new_order(order_event_payload(capture.order))
