import json
from datetime import datetime, timezone

import pytest

from foodpay.common.errors import ValidationError
from foodpay.services.payments.webhook_events import (
    PaymentCaptured,
    PaymentFailed,
    UnknownEvent,
    decode_webhook_event,
)


def _raw(event, entity=None):
    payload = {"payment": {"entity": entity}} if entity is not None else {}
    return json.dumps({"event": event, "payload": payload}).encode()


def test_captured_event_decoded():
    event = decode_webhook_event(
        _raw(
            "payment.captured",
            {"id": "pay_1", "order_id": "order_1", "method": "card", "created_at": 1792238400, "amount": 30050},
        )
    )
    assert event == PaymentCaptured(
        remote_intent_id="order_1",
        remote_payment_id="pay_1",
        method="card",
        captured_at=datetime.fromtimestamp(1792238400, tz=timezone.utc),
    )


def test_failed_event_decoded():
    event = decode_webhook_event(
        _raw(
            "payment.failed",
            {"id": "pay_2", "order_id": "order_1", "created_at": 1792238400, "error_description": "declined"},
        )
    )
    assert isinstance(event, PaymentFailed)
    assert event.reason == "declined"


def test_other_events_are_unknown():
    event = decode_webhook_event(_raw("order.paid"))
    assert isinstance(event, UnknownEvent)
    assert event.event_type == "order.paid"


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"[]",
        b'{"payload": {}}',
        _raw("payment.captured"),
        _raw("payment.captured", {"id": "pay_1"}),
        _raw("payment.captured", {"id": "pay_1", "order_id": "order_1", "created_at": "yesterday"}),
        _raw("payment.captured", {"id": "pay_1", "order_id": "order_1", "created_at": 1792238400000}),
        _raw("payment.captured", {"id": "pay_1", "order_id": "order_1", "created_at": 10**20}),
    ],
)
def test_malformed_payloads_rejected(raw):
    with pytest.raises(ValidationError):
        decode_webhook_event(raw)
