"""Razorpay Orders API client.

Only remote order ("payment intent") creation is needed here; captures and
failures arrive through the webhook and client verification paths.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import httpx

from foodpay.common.logging import logger
from foodpay.common.metrics import gateway_latency_seconds
from foodpay.common.tracing import payment_span


class GatewayError(Exception):
    """Gateway unreachable or answered with a server error."""


class GatewayTimeout(GatewayError):
    pass


class GatewayRejected(GatewayError):
    """Gateway refused the request (4xx) with a client-facing description."""

    def __init__(self, status_code: int, description: str) -> None:
        super().__init__(description)
        self.status_code = status_code
        self.description = description


@dataclass(frozen=True)
class RemoteOrder:
    id: str
    amount_minor: int
    currency: str
    receipt: str | None = None


class PaymentGateway(Protocol):
    @property
    def configured(self) -> bool: ...

    @property
    def public_key(self) -> str: ...

    def create_remote_order(
        self, amount: Decimal, currency: str, receipt: str, notes: dict | None = None
    ) -> RemoteOrder: ...

    def close(self) -> None: ...


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise (or any 2-decimal currency to its minor unit)."""

    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RazorpayClient:
    """Thin sync client over `POST /orders` with HTTP basic auth."""

    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        service_name: str = "foodpay-api",
    ) -> None:
        self.key_id = key_id
        self._configured = bool(key_id and key_secret)
        self.service_name = service_name
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self._configured

    @property
    def public_key(self) -> str:
        return self.key_id

    def create_remote_order(
        self, amount: Decimal, currency: str, receipt: str, notes: dict | None = None
    ) -> RemoteOrder:
        body = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        latency = gateway_latency_seconds.labels(service=self.service_name, operation="create_order")
        with payment_span("gateway.create_order", receipt=receipt, amount_minor=body["amount"]):
            with latency.time():
                try:
                    resp = self._client.post("/orders", json=body)
                except httpx.TimeoutException as exc:
                    raise GatewayTimeout(f"gateway timed out: {exc}") from exc
                except httpx.HTTPError as exc:
                    raise GatewayError(f"gateway request failed: {exc}") from exc

        if resp.status_code >= 500:
            raise GatewayError(f"gateway error status={resp.status_code}")
        if resp.status_code >= 400:
            description = _error_description(resp)
            logger.warning("gateway_rejected status=%s description=%s", resp.status_code, description)
            raise GatewayRejected(resp.status_code, description)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise GatewayError("gateway order response malformed") from exc
        if not isinstance(payload, dict):
            raise GatewayError("gateway order response malformed")
        remote_id = payload.get("id")
        if not isinstance(remote_id, str) or not remote_id:
            raise GatewayError("gateway order response malformed")
        return RemoteOrder(
            id=remote_id,
            amount_minor=int(payload.get("amount", body["amount"])),
            currency=payload.get("currency", currency),
            receipt=payload.get("receipt", receipt),
        )

    def close(self) -> None:
        self._client.close()


def _error_description(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return f"status {resp.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"status {resp.status_code}"
