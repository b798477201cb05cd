"""Print the checkout verification signature and a ready-to-post body.

Mirrors what the gateway's checkout widget hands the browser after a
successful payment, so `/payments/verify` can be exercised without a browser.
"""

import argparse
import json

from foodpay.common.signatures import payment_signature


def main() -> None:
    parser = argparse.ArgumentParser(description="Compute a payment verification signature.")
    parser.add_argument("--secret", required=True, help="Gateway key secret")
    parser.add_argument("--remote-intent-id", required=True)
    parser.add_argument("--remote-payment-id", required=True)
    parser.add_argument("--order-id", default=None, help="Also print a /payments/verify body")
    args = parser.parse_args()

    signature = payment_signature(args.secret, args.remote_intent_id, args.remote_payment_id)
    print(signature)
    if args.order_id:
        body = {
            "remoteOrderId": args.remote_intent_id,
            "remotePaymentId": args.remote_payment_id,
            "remoteSignature": signature,
            "orderId": args.order_id,
        }
        print(json.dumps(body, indent=2))


if __name__ == "__main__":
    main()
