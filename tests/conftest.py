"""Shared fixtures: in-memory database, fake gateway, recording transport."""

import os

os.environ["DATABASE_DSN"] = "sqlite://"
os.environ["API_KEY"] = "test-admin-key"
os.environ["TRACING_ENABLED"] = "false"
os.environ["GATEWAY_KEY_ID"] = "rzp_test_key"
os.environ["GATEWAY_KEY_SECRET"] = "client-secret"
os.environ["GATEWAY_WEBHOOK_SECRET"] = "webhook-secret"

from datetime import datetime, timezone
from decimal import Decimal
from itertools import count

import pytest

from foodpay.common.db import Base, make_engine, make_session_factory
from foodpay.services.catalog.models import MenuItem
from foodpay.services.ledger import models as ledger_models  # noqa: F401
from foodpay.services.payments.dedupe import WebhookDeliveryCache
from foodpay.services.payments.gateway import GatewayError, RemoteOrder


ADMIN_KEY = "test-admin-key"
CLIENT_SECRET = "client-secret"
WEBHOOK_SECRET = "webhook-secret"
FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeGateway:
    """Records remote order creation calls and hands out sequential ids."""

    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self.public_key = "rzp_test_key"
        self.calls: list[dict] = []
        self.error: GatewayError | None = None
        self.closed = False
        self._ids = count(1)

    def create_remote_order(self, amount, currency, receipt, notes=None) -> RemoteOrder:
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        if self.error is not None:
            raise self.error
        return RemoteOrder(
            id=f"order_remote_{next(self._ids)}",
            amount_minor=int(amount * 100),
            currency=currency,
            receipt=receipt,
        )

    def close(self) -> None:
        self.closed = True


class RecordingTransport:
    def __init__(self) -> None:
        self.published: list[tuple[str, str, dict]] = []
        self.fail = False

    def publish(self, channel, event, payload) -> None:
        if self.fail:
            raise ConnectionError("socket layer down")
        self.published.append((channel, event, payload))

    def events(self, event: str) -> list[tuple[str, dict]]:
        return [(channel, payload) for channel, name, payload in self.published if name == event]


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.down = False

    def get(self, key):
        if self.down:
            raise ConnectionError("redis down")
        return self.store.get(key)

    def setex(self, key, ttl, value):
        if self.down:
            raise ConnectionError("redis down")
        self.store[key] = value


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = make_session_factory(engine)
    with factory() as db:
        db.add_all(
            [
                MenuItem(item_id="burger", name="Paneer Burger", price=Decimal("120.00"), available=True),
                MenuItem(item_id="fries", name="Masala Fries", price=Decimal("60.50"), available=True),
                MenuItem(item_id="shake", name="Mango Shake", price=Decimal("99.99"), available=False),
            ]
        )
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def services(session_factory, gateway, transport, fake_redis):
    from foodpay.services.api.wiring import build_services

    return build_services(
        session_factory,
        gateway=gateway,
        transport=transport,
        delivery_cache=WebhookDeliveryCache(fake_redis, ttl_seconds=60),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client(services):
    from fastapi.testclient import TestClient

    from foodpay.services.api.main import create_app

    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def place_order(services):
    """Create an order for a customer with the given {item_id: quantity} cart."""

    from foodpay.services.orders.service import CartLine

    def _place(customer_id: str = "cust-1", cart: dict[str, int] | None = None):
        cart = cart or {"burger": 2, "fries": 1}
        return services.orders.create_order(
            customer_id,
            [CartLine(item_id=item_id, quantity=qty) for item_id, qty in cart.items()],
            "42 MG Road, Bengaluru",
            "9876543210",
        )

    return _place


@pytest.fixture
def paid_order(services, place_order):
    """An order whose payment was confirmed through client verification."""

    from foodpay.common.signatures import payment_signature

    def _paid(customer_id: str = "cust-1"):
        order = place_order(customer_id)
        intent = services.intents.create_intent(order.order_id, customer_id=customer_id)
        services.reconciler.confirm_payment(
            intent.remote_intent_id,
            "pay_001",
            payment_signature(CLIENT_SECRET, intent.remote_intent_id, "pay_001"),
            order.order_id,
            customer_id=customer_id,
        )
        return services.queries.get_order(order.order_id)

    return _paid
