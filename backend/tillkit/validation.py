from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def to_cents(value: Any, field: str = "amount") -> int:
    """
    Normalize a money value into integer cents.

    Accepts ints (already major units, e.g. 1000 -> 100000 cents), Decimals
    and plain decimal strings ("1000.00"). Floats are accepted only when they
    survive a round trip through str() without losing precision; anything
    with more than two decimal places is rejected rather than rounded.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        # Reject scientific notation (e.g., "1e5")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain decimal (scientific notation not allowed)")
        raw = stripped
    elif isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount.quantize(CENTS) != amount:
        raise ValidationError(f"{field} cannot have more than two decimal places")

    cents = int(amount * 100)
    if abs(cents) > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:.2f}")
    return cents


def bps_to_rate(bps: int | None) -> Decimal:
    """Basis points (500) -> fraction (Decimal('0.05'))."""
    return Decimal(bps or 0) / Decimal(10000)


def require_choice(value: Any, choices: Iterable[str], field: str) -> str:
    options = list(choices)
    if not isinstance(value, str) or value not in options:
        raise ValidationError(
            f"Invalid {field}: {value!r}. Must be one of {options}",
            details={"field": field, "allowed": options},
        )
    return value


def require_int_range(value: Any, low: int, high: int, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < low or value > high:
        raise ValidationError(
            f"{field} must be between {low} and {high}",
            details={"field": field, "min": low, "max": high, "value": value},
        )
    return value


def require_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value
