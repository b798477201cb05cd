"""Prometheus metric definitions for ordering and payment reconciliation."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


orders_created_total = Counter("orders_created_total", "Total orders created", ["service"])
order_transitions_total = Counter(
    "order_transitions_total",
    "Order status transitions committed",
    ["service", "to_status"],
)
payment_intents_total = Counter(
    "payment_intents_total",
    "Payment intent creation attempts by outcome",
    ["service", "outcome"],
)
payment_confirmations_total = Counter(
    "payment_confirmations_total",
    "Payment confirmation attempts by entry point and outcome",
    ["service", "source", "outcome"],
)
payment_failures_total = Counter("payment_failures_total", "Payments marked FAILED", ["service"])
signature_failures_total = Counter(
    "signature_failures_total",
    "Rejected signatures by entry point",
    ["service", "source"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Verified webhook events by type",
    ["service", "event_type"],
)
duplicate_webhooks_skipped_total = Counter(
    "duplicate_webhooks_skipped_total",
    "Webhook deliveries skipped by delivery-id cache",
    ["service"],
)
notification_publish_total = Counter(
    "notification_publish_total",
    "Notification fanout publishes by event and outcome",
    ["service", "event", "outcome"],
)
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Payment gateway call latency seconds",
    ["service", "operation"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
