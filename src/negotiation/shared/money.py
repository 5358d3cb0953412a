"""Decimal amounts for quantities, prices, percentages and freight.

Amounts are held as canonical fixed-point text on the domain objects and
parsed back into ``Decimal`` for arithmetic, so repeated recalculation never
drifts by a cent the way binary floats do.
"""

from decimal import Decimal, InvalidOperation

from protean.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Storage width of amount text fields
AMOUNT_TEXT_LENGTH = 40
DERIVED_TEXT_LENGTH = 64


def to_decimal(value, field):
    """Parse ``value`` into a finite ``Decimal`` or raise a ValidationError keyed by ``field``."""
    if value is None or isinstance(value, bool):
        raise ValidationError({field: [f"{field} must be a decimal number"]})

    if isinstance(value, float):
        # str() gives the shortest repr, so 0.1 becomes Decimal("0.1")
        value = str(value)

    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: [f"{field} must be a decimal number"]}) from None

    if not amount.is_finite():
        raise ValidationError({field: [f"{field} must be a finite number"]})
    return amount


def to_text(amount):
    """Render a Decimal as plain fixed-point text, never in exponent form."""
    return format(amount, "f")


def positive(value, field):
    amount = to_decimal(value, field)
    if amount <= ZERO:
        raise ValidationError({field: [f"{field} must be greater than zero"]})
    return amount


def non_negative(value, field):
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise ValidationError({field: [f"{field} cannot be negative"]})
    return amount


def percentage(value, field):
    amount = to_decimal(value, field)
    if amount < ZERO or amount > HUNDRED:
        raise ValidationError({field: [f"{field} must be between 0 and 100"]})
    return amount


def line_amounts(quantity, unit_price, discount_percent):
    """Return ``(total, discount_amount, final_value)`` for one order line.

    No rounding is applied: ``discount_amount`` is exactly
    ``total * discount_percent / 100``.
    """
    total = quantity * unit_price
    discount_amount = total * discount_percent / HUNDRED
    return total, discount_amount, total - discount_amount


def bounded_text(amount, field, max_length):
    """Render ``amount`` with ``to_text`` and refuse it if it does not fit ``max_length`` characters."""
    text = to_text(amount)
    if len(text) > max_length:
        raise ValidationError({field: [f"{field} is too large to store"]})
    return text
