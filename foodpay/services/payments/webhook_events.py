"""Webhook payload decoding.

The raw gateway envelope is decoded once, at the boundary, into one of a
closed set of event types. The reconciler only ever sees these.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

import pydantic
from pydantic import BaseModel, ConfigDict

from foodpay.common.errors import ValidationError


PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"


@dataclass(frozen=True)
class PaymentCaptured:
    remote_intent_id: str
    remote_payment_id: str
    method: str | None
    captured_at: datetime


@dataclass(frozen=True)
class PaymentFailed:
    remote_intent_id: str
    remote_payment_id: str
    reason: str | None = None


@dataclass(frozen=True)
class UnknownEvent:
    event_type: str
    raw: dict[str, Any] = field(default_factory=dict)


WebhookEvent = Union[PaymentCaptured, PaymentFailed, UnknownEvent]


class _Envelope(BaseModel):
    event: str
    payload: dict[str, Any] = {}


class _PaymentEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order_id: str
    method: str | None = None
    created_at: int
    error_description: str | None = None


def decode_webhook_event(raw_payload: bytes) -> WebhookEvent:
    try:
        envelope = _Envelope.model_validate_json(raw_payload)
    except pydantic.ValidationError as exc:
        raise ValidationError("Malformed webhook payload") from exc

    if envelope.event not in (PAYMENT_CAPTURED, PAYMENT_FAILED):
        return UnknownEvent(event_type=envelope.event, raw=envelope.payload)

    try:
        entity = _PaymentEntity.model_validate(envelope.payload["payment"]["entity"])
    except (KeyError, TypeError, pydantic.ValidationError) as exc:
        raise ValidationError(f"Malformed {envelope.event} payload") from exc

    if envelope.event == PAYMENT_CAPTURED:
        try:
            captured_at = datetime.fromtimestamp(entity.created_at, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as exc:
            raise ValidationError(f"Malformed {envelope.event} payload") from exc
        return PaymentCaptured(
            remote_intent_id=entity.order_id,
            remote_payment_id=entity.id,
            method=entity.method,
            captured_at=captured_at,
        )
    return PaymentFailed(
        remote_intent_id=entity.order_id,
        remote_payment_id=entity.id,
        reason=entity.error_description,
    )
