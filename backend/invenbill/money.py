# Overview: Currency helpers; all stored amounts are integer cents.

"""
Money handling (authoritative)

- Amounts are stored as integer cents. Floats never touch storage.
- API input accepts decimal strings or numbers with at most 2 decimal places
  ("12.50", 12.5, "3"). More precision is rejected instead of silently rounded.
- Derived amounts (tax) are computed with Decimal and rounded half-up to the cent.
- API output renders cents as a fixed two-place decimal string ("37.50").
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .validation import ValidationError

CENT = Decimal("0.01")

# Maximum single amount: $9,999,999,999.99
MAX_AMOUNT_CENTS = 999_999_999_999


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount of cents to an integer (half-up)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_decimal(value, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        # repr() gives the shortest round-tripping form (12.5 -> "12.5")
        d = Decimal(repr(value))
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValidationError(f"{field} must be a number")
        try:
            d = Decimal(s)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return d


def parse_money(value, field: str = "amount", *, allow_negative: bool = False) -> int:
    """Parse a money value into integer cents."""
    d = to_decimal(value, field)
    # Bound before quantize: a huge exponent overflows the decimal context
    if d.adjusted() > 12 or abs(d) * 100 > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large")
    if d != d.quantize(CENT):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    if d < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    return int(d * 100)


def parse_rate(value, field: str = "tax_rate") -> Decimal:
    """Parse a percentage rate (0-100, at most 2 decimal places)."""
    d = to_decimal(value, field)
    if d < 0 or d > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    if d != d.quantize(CENT):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return d.quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d}"


def format_rate(rate) -> str | None:
    if rate is None:
        return None
    return str(Decimal(rate).quantize(CENT))
