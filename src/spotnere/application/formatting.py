from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CURRENCY_SYMBOLS = {"INR": "₹"}


def _parse_timestamp(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_booking_datetime(value: str | None) -> str:
    """
    en-IN medium date + short time, e.g. "27 Jan 2025, 3:30 pm".
    Rendered in the offset the client supplied; "scheduled" if unparseable.
    """
    if not value:
        return "scheduled"
    moment = _parse_timestamp(value)
    if moment is None:
        return "scheduled"

    hour = moment.hour % 12 or 12
    meridiem = "am" if moment.hour < 12 else "pm"
    return f"{moment.day} {moment:%b %Y}, {hour}:{moment:%M} {meridiem}"


def _group_indian(digits: str) -> str:
    # 1234567 -> 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_amount(amount, currency: str = "INR") -> str:
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except InvalidOperation:
        value = Decimal("0")
    value = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):f}".partition(".")
    fraction = fraction.rstrip("0")
    number = _group_indian(whole) + (f".{fraction}" if fraction else "")

    symbol = _CURRENCY_SYMBOLS.get((currency or "INR").upper())
    if symbol:
        return f"{sign}{symbol}{number}"
    return f"{sign}{currency.upper()} {number}"


def render_new_booking_notification(
    booking_date_time: str | None,
    amount_paid,
    currency: str = "INR",
) -> tuple[str, str]:
    title = "New booking"
    body = (
        f"You have a new booking for {format_booking_datetime(booking_date_time)}. "
        f"Amount: {format_amount(amount_paid, currency)}"
    )
    return title, body
