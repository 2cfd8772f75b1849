"""
Verification of gateway-origin payment claims through the razorpay SDK.

Checkout claims are signed over "<order_id>|<payment_id>" with the API key
secret; webhooks are signed over the exact raw request body with the webhook
secret. Never feed a re-serialised JSON body into the webhook variant.

Both checks return a plain bool and never raise.
"""

from typing import Optional

import razorpay


def _utility(secret: str):
    # Only the secret takes part in signature checks.
    return razorpay.Client(auth=("", secret)).utility


def _usable(signature: Optional[str]) -> bool:
    return isinstance(signature, str) and bool(signature) and signature.isascii()


def verify_checkout_signature(
    order_id: str,
    payment_id: str,
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    if not secret or not order_id or not payment_id or not _usable(signature):
        return False
    try:
        _utility(secret).verify_payment_signature(
            {
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            }
        )
    except razorpay.errors.SignatureVerificationError:
        return False
    return True


def verify_webhook_signature(
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    if not secret or not isinstance(raw_body, (bytes, bytearray)) or not _usable(signature):
        return False
    try:
        body = bytes(raw_body).decode("utf-8")
        _utility(secret).verify_webhook_signature(body, signature, secret)
    except UnicodeDecodeError:
        return False
    except razorpay.errors.SignatureVerificationError:
        return False
    return True
