"""
Money helpers.

All amounts are Decimal and rounded half-up to the smallest currency subunit.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from mlm_app.config.constants import (
    CURRENCY_SUBUNITS,
    MONEY_QUANTUM,
    PERCENT_MAX,
    PERCENT_MIN,
)
from mlm_app.utils.exceptions import ValidationError


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a user-supplied value to Decimal.

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        ValidationError: If value is not a finite number
    """
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return result


def quantize_money(amount: Decimal) -> Decimal:
    """Round to the currency subunit (half-up)."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """
    Calculate amount * percentage / 100, rounded to the subunit.

    Args:
        amount: Base amount
        percentage: Percentage in [0, 100]

    Returns:
        Rounded share (0 when either input is not positive)
    """
    if amount <= 0 or percentage <= 0:
        return Decimal("0.00")
    return quantize_money(amount * percentage / Decimal("100"))


def validate_percentage(value: Decimal) -> Decimal:
    """
    Ensure a percentage lies within [0, 100].

    Raises:
        ValidationError: If out of range
    """
    value = to_decimal(value)
    if not PERCENT_MIN <= value <= PERCENT_MAX:
        raise ValidationError(f"Percentage must be between 0 and 100, got {value}")
    return value


def to_subunits(amount: Decimal) -> int:
    """Convert to the smallest currency unit (e.g. rupees to paise)."""
    return int(quantize_money(amount) * CURRENCY_SUBUNITS)
