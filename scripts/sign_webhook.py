"""Post a signed gateway webhook to the API.

Useful for manual capture/failure testing and for replaying the same delivery
concurrently to watch duplicate handling.
"""

import argparse
import asyncio
import json
import time
from uuid import uuid4

import httpx

from foodpay.common.signatures import webhook_signature


def build_payload(event: str, remote_intent_id: str, remote_payment_id: str, method: str) -> dict:
    entity = {
        "id": remote_payment_id,
        "order_id": remote_intent_id,
        "method": method,
        "created_at": int(time.time()),
    }
    if event == "payment.failed":
        entity["error_description"] = "Payment declined by issuer"
    return {"event": event, "payload": {"payment": {"entity": entity}}}


async def send(base_url: str, secret: str, body: bytes, delivery_id: str, copies: int) -> list[tuple[int, str]]:
    """Send `copies` identical deliveries at once and return (status, body) pairs."""

    headers = {
        "content-type": "application/json",
        "x-razorpay-signature": webhook_signature(secret, body),
        "x-razorpay-event-id": delivery_id,
    }
    async with httpx.AsyncClient(timeout=10.0) as client:
        responses = await asyncio.gather(
            *[client.post(f"{base_url}/payments/webhook", content=body, headers=headers) for _ in range(copies)]
        )
    return [(resp.status_code, resp.text) for resp in responses]


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a signed payment webhook.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--secret", required=True, help="Webhook signing secret")
    parser.add_argument("--event", choices=["payment.captured", "payment.failed"], default="payment.captured")
    parser.add_argument("--remote-intent-id", required=True)
    parser.add_argument("--remote-payment-id", default=None)
    parser.add_argument("--method", default="upi")
    parser.add_argument("--delivery-id", default=None)
    parser.add_argument("--copies", type=int, default=1, help="Concurrent duplicate deliveries")
    args = parser.parse_args()

    payload = build_payload(
        args.event,
        args.remote_intent_id,
        args.remote_payment_id or f"pay_{uuid4().hex[:14]}",
        args.method,
    )
    body = json.dumps(payload).encode("utf-8")
    delivery_id = args.delivery_id or str(uuid4())
    results = asyncio.run(send(args.base_url, args.secret, body, delivery_id, max(1, args.copies)))
    for status_code, text in results:
        print(f"status={status_code} body={text}")


if __name__ == "__main__":
    main()
