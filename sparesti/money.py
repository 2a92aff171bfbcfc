"""
Amount handling

Ledger amounts are signed Decimals rounded half-up to a fixed number of
places. NEVER uses float arithmetic for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union

getcontext().prec = 28

DEFAULT_PRECISION = 2

AmountLike = Union[Decimal, int, float, str]


def to_amount(value: AmountLike, precision: int = DEFAULT_PRECISION) -> Decimal:
    """
    Convert a value to a rounded Decimal amount

    Floats are converted through their string form so 0.1 stays 0.1.

    Raises:
        ValueError: If the value is missing, not numeric, not finite or too large
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Amount is required")

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to an amount")

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value}")

    try:
        return amount.quantize(Decimal('0.1') ** precision, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Needs more digits than the context precision allows
        raise ValueError(f"Amount out of range: {value}")


def format_amount(amount: Decimal) -> str:
    """Format for display, e.g. '-1,250.50'"""
    return f"{amount:,.{max(-amount.as_tuple().exponent, 0)}f}"
