"""Post-commit notification fanout.

Every publish here happens after the originating transaction committed.
Delivery is best effort: transport failures are logged and counted, never
raised to the caller and never able to roll anything back.
"""

from datetime import datetime, timezone
from typing import Any, Protocol

from foodpay.common.logging import logger
from foodpay.common.metrics import notification_publish_total


ADMIN_CHANNEL = "admin"
ORDER_STATUS_EVENT = "order:status-update"
NEW_ORDER_EVENT = "order:new"
PAYMENT_UPDATE_EVENT = "payment:update"


def customer_channel(customer_id: str) -> str:
    return f"user:{customer_id}"


def order_channel(order_id: str) -> str:
    return f"order:{order_id}"


class NotificationTransport(Protocol):
    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None: ...


class NotificationFanout:
    """Formats order/payment events and hands them to the live transport."""

    def __init__(self, transport: NotificationTransport, service_name: str = "foodpay-api", clock=None) -> None:
        self.transport = transport
        self.service_name = service_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def payment_update(self, customer_id: str, order_id: str, payment_status: str, message: str) -> None:
        """Tell the paying customer what happened to their payment."""

        self._publish(
            customer_channel(customer_id),
            PAYMENT_UPDATE_EVENT,
            {"orderId": order_id, "paymentStatus": payment_status, "message": message},
        )

    def order_update(self, order_id: str, status: str, message: str, timestamp: datetime | None = None) -> None:
        """Broadcast a status change to the order's viewers and to admins."""

        payload = {
            "orderId": order_id,
            "status": status,
            "message": message,
            "timestamp": (timestamp or self.clock()).isoformat(),
        }
        self._publish(order_channel(order_id), ORDER_STATUS_EVENT, payload)
        self._publish(ADMIN_CHANNEL, ORDER_STATUS_EVENT, payload)

    def new_order(self, order: dict[str, Any]) -> None:
        """First operational visibility of a paid order."""

        self._publish(ADMIN_CHANNEL, NEW_ORDER_EVENT, order)

    def _publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        try:
            self.transport.publish(channel, event, payload)
        except Exception as exc:
            logger.exception("notification_publish_failed channel=%s event=%s error=%s", channel, event, exc)
            notification_publish_total.labels(service=self.service_name, event=event, outcome="failed").inc()
            return
        notification_publish_total.labels(service=self.service_name, event=event, outcome="sent").inc()
