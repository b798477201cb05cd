import base64
import json
from decimal import Decimal

import httpx
import pytest

from foodpay.common.errors import ServiceUnavailable
from foodpay.services.payments.gateway import (
    GatewayError,
    GatewayRejected,
    GatewayTimeout,
    RazorpayClient,
    to_minor_units,
)


def _client(handler) -> RazorpayClient:
    return RazorpayClient(
        "https://api.razorpay.com/v1",
        "rzp_test_key",
        "rzp_secret",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def test_create_remote_order_posts_minor_units_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"id": "order_Nx1", "amount": seen["body"]["amount"], "currency": "INR", "receipt": "r1"},
        )

    client = _client(handler)
    remote = client.create_remote_order(Decimal("300.50"), "INR", "r1", notes={"orderId": "o-1"})

    assert remote.id == "order_Nx1"
    assert remote.amount_minor == 30050
    assert seen["path"] == "/v1/orders"
    assert seen["auth"] == "Basic " + base64.b64encode(b"rzp_test_key:rzp_secret").decode()
    assert seen["body"] == {"amount": 30050, "currency": "INR", "receipt": "r1", "notes": {"orderId": "o-1"}}
    client.close()


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(Decimal("19.99")) == 1999


def test_timeout_maps_to_gateway_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayTimeout):
        _client(handler).create_remote_order(Decimal("10.00"), "INR", "r1")


def test_connection_error_maps_to_gateway_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayError):
        _client(handler).create_remote_order(Decimal("10.00"), "INR", "r1")


def test_client_error_carries_gateway_description():
    def handler(request):
        return httpx.Response(
            400,
            json={"error": {"code": "BAD_REQUEST_ERROR", "description": "The amount must be atleast INR 1.00"}},
        )

    with pytest.raises(GatewayRejected) as exc:
        _client(handler).create_remote_order(Decimal("0.10"), "INR", "r1")
    assert exc.value.status_code == 400
    assert exc.value.description == "The amount must be atleast INR 1.00"


def test_server_error_is_not_a_rejection():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(GatewayError) as exc:
        _client(handler).create_remote_order(Decimal("10.00"), "INR", "r1")
    assert not isinstance(exc.value, GatewayRejected)


def test_unconfigured_without_credentials():
    client = RazorpayClient("https://api.razorpay.com/v1", "", "", transport=httpx.MockTransport(lambda r: None))
    assert not client.configured


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy</html>"),
        httpx.Response(200, json=["order_Nx1"]),
        httpx.Response(200, json={"amount": 1000}),
    ],
)
def test_malformed_success_body_is_gateway_error(response):
    with pytest.raises(GatewayError, match="malformed"):
        _client(lambda request: response).create_remote_order(Decimal("10.00"), "INR", "r1")


def test_malformed_gateway_reply_makes_intent_unavailable(services, place_order):
    services.intents.gateway = _client(lambda request: httpx.Response(200, text="<html>proxy</html>"))
    order = place_order()

    with pytest.raises(ServiceUnavailable) as exc:
        services.intents.create_intent(order.order_id)

    assert exc.value.message == "payment gateway unavailable"
    assert services.queries.get_payment(order.order_id).remote_intent_id is None
