import secrets
import string
import time

RECEIPT_MAX_LENGTH = 40

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def generate_booking_ref_number(now_ms: int | None = None) -> str:
    # SPT-<epoch millis>-<8 base36 chars>, 26 chars today so it doubles as a receipt.
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(8))
    return f"SPT-{now_ms}-{suffix}"


def build_receipt(booking_id: str) -> str:
    """
    Receipt for re-issued orders: "booking_<id>" when it fits the gateway
    limit, otherwise "bk_" plus the first 32 characters of the id with
    dashes stripped.
    """
    receipt = f"booking_{booking_id}"
    if len(receipt) <= RECEIPT_MAX_LENGTH:
        return receipt
    return f"bk_{str(booking_id).replace('-', '')[:32]}"
