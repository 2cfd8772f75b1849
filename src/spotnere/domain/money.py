from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Amount = Union[int, float, str, Decimal]

_MINOR_UNITS_PER_MAJOR = 100


def _as_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, bool):
        raise TypeError("amount must be numeric, got bool")
    if isinstance(amount, Decimal):
        return amount
    try:
        # str() keeps floats at their shortest repr, so 19.995 stays 19.995.
        return Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc


def to_minor_units(amount: Amount) -> int:
    """
    Converts a major-unit amount (rupees) to the integer minor-unit amount
    (paise) the gateway expects, rounding half up.

    >>> to_minor_units(19.99)
    1999
    >>> to_minor_units(19.995)
    2000
    """
    value = _as_decimal(amount) * _MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: Amount) -> Decimal:
    return (_as_decimal(amount_minor) / _MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))
