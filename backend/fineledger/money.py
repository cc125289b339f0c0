# Overview: Helpers for integer minor-unit amounts.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import ValidationError


def cents_to_str(amount_cents: int | None) -> str | None:
    """Render integer minor units as a fixed two-decimal string."""
    if amount_cents is None:
        return None
    sign = "-" if amount_cents < 0 else ""
    whole, frac = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def parse_amount_cents(value, *, field: str = "amount_cents") -> int:
    """
    Strictly coerce a client-supplied minor-unit amount.

    Accepts ints and digit-only strings. Rejects bools, floats and
    anything that is not a positive whole number.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")
    if amount <= 0:
        raise ValidationError(f"{field} must be positive")
    return amount


def decimal_to_cents(value) -> int:
    """Convert a decimal amount ("5000", "12.50") to minor units."""
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError("Amount cannot have more than two decimal places")
    return int(amount * 100)
