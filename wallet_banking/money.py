"""
Monetary Amount Helpers

All balances and transaction amounts are Decimal values rounded to two
places with ROUND_HALF_UP. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

PRECISION = 2
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, str, float]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a Decimal rounded to currency precision

    Floats are converted through their string form so that 0.1 stays 0.10.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to an amount")

    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to an amount")

    if not value.is_finite():
        raise ValueError(f"Amount must be finite, got {value}")

    return value.quantize(Decimal('0.1') ** PRECISION, rounding=ROUND_HALF_UP)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number ("R 1,250.50", "99,95")

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - comma is the thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        whole, fraction = clean_value.split(',')
        if len(fraction) <= 2:
            clean_value = f"{whole}.{fraction}"
        else:
            clean_value = whole + fraction

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def amounts_match(a: Decimal, b: Decimal, epsilon: Decimal) -> bool:
    """Check whether two amounts differ by at most epsilon"""
    return abs(a - b) <= epsilon


def format_amount(amount: Decimal, currency: str = "ZAR") -> str:
    """Format for display, e.g. 'ZAR 33,952.59'"""
    return f"{currency} {to_amount(amount):,.{PRECISION}f}"
