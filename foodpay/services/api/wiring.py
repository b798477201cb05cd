"""Collaborator construction for the API process.

Everything stateful (gateway client, live hub, catalog, clock) is built here
once and passed into the services; nothing below reaches for globals.
"""

from dataclasses import dataclass

import httpx
import redis

from foodpay.common.config import settings
from foodpay.services.catalog.lookup import Catalog, SqlCatalog
from foodpay.services.ledger.queries import OrderQueries
from foodpay.services.notification.fanout import NotificationFanout
from foodpay.services.notification.hub import NotificationHub
from foodpay.services.orders.service import OrderService
from foodpay.services.orders.status import OrderStatusService
from foodpay.services.payments.dedupe import WebhookDeliveryCache
from foodpay.services.payments.gateway import PaymentGateway, RazorpayClient
from foodpay.services.payments.intents import PaymentIntentService
from foodpay.services.payments.reconciler import PaymentReconciler


@dataclass
class Services:
    orders: OrderService
    queries: OrderQueries
    status: OrderStatusService
    intents: PaymentIntentService
    reconciler: PaymentReconciler
    hub: NotificationHub
    gateway: PaymentGateway


def build_services(
    session_factory,
    gateway: PaymentGateway | None = None,
    catalog: Catalog | None = None,
    transport=None,
    delivery_cache: WebhookDeliveryCache | None = None,
    clock=None,
    http_transport: httpx.BaseTransport | None = None,
) -> Services:
    """Assemble the service graph; any collaborator may be overridden."""

    service_name = settings.service_name
    hub = NotificationHub(
        queue_size=settings.notification_queue_size,
        send_timeout=settings.notification_send_timeout_seconds,
    )
    if gateway is None:
        gateway = RazorpayClient(
            settings.gateway_base_url,
            settings.gateway_key_id,
            settings.gateway_key_secret,
            timeout=settings.gateway_timeout_seconds,
            transport=http_transport,
            service_name=service_name,
        )
    if catalog is None:
        catalog = SqlCatalog(session_factory)
    if delivery_cache is None:
        rdb = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        delivery_cache = WebhookDeliveryCache(rdb, settings.webhook_dedupe_ttl_seconds)

    fanout = NotificationFanout(transport or hub, service_name=service_name, clock=clock)
    return Services(
        orders=OrderService(session_factory, catalog, service_name=service_name),
        queries=OrderQueries(session_factory),
        status=OrderStatusService(session_factory, fanout, service_name=service_name, clock=clock),
        intents=PaymentIntentService(
            session_factory,
            gateway,
            currency=settings.payment_currency,
            service_name=service_name,
            clock=clock,
        ),
        reconciler=PaymentReconciler(
            session_factory,
            fanout,
            client_secret=settings.gateway_key_secret,
            webhook_secret=settings.gateway_webhook_secret,
            delivery_cache=delivery_cache,
            service_name=service_name,
            clock=clock,
        ),
        hub=hub,
        gateway=gateway,
    )
