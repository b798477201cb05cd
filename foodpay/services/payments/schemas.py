from decimal import Decimal

from pydantic import Field

from foodpay.services.ledger.schemas import ApiModel


class CreateIntentRequest(ApiModel):
    order_id: str = Field(min_length=1)
    amount: Decimal | None = Field(default=None, gt=0)


class IntentResponse(ApiModel):
    remote_intent_id: str
    amount: Decimal
    currency: str
    gateway_public_key: str


class VerifyPaymentRequest(ApiModel):
    remote_order_id: str = Field(min_length=1)
    remote_payment_id: str = Field(min_length=1)
    remote_signature: str = Field(min_length=1)
    order_id: str = Field(min_length=1)


class VerificationResponse(ApiModel):
    order_id: str
    payment_status: str
    order_status: str
    already_processed: bool


class WebhookAck(ApiModel):
    status: str = "ok"
    outcome: str
