"""HMAC-SHA256 signing scheme shared with the payment gateway.

Two distinct secrets are in play: the gateway key secret signs client-side
payment proofs (`intent_id|payment_id`), the webhook secret signs raw webhook
bodies. Both digests are lowercase hex.
"""

import hashlib
import hmac


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(secret: str, remote_intent_id: str, remote_payment_id: str) -> str:
    return _hex_hmac(secret, f"{remote_intent_id}|{remote_payment_id}".encode("utf-8"))


def webhook_signature(secret: str, raw_body: bytes) -> str:
    return _hex_hmac(secret, raw_body)


def verify_payment_signature(
    secret: str, remote_intent_id: str, remote_payment_id: str, provided: str | None
) -> bool:
    """Constant-time check of a client-submitted payment proof."""

    if not secret or not provided:
        return False
    expected = payment_signature(secret, remote_intent_id, remote_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify_webhook_signature(secret: str, raw_body: bytes, provided: str | None) -> bool:
    """Constant-time check of a webhook body signature header."""

    if not secret or not provided:
        return False
    expected = webhook_signature(secret, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
