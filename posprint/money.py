"""Money helpers. Amounts are integer minor units (øre for DKK) everywhere."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

MINOR_PER_MAJOR = 100


def to_minor(amount: Decimal | str | int | float) -> int:
    """
    Convert a major-unit amount ("12.50") to minor units (1250).

    Rounds half up once, here, so values never drift across later renders.
    """
    value = Decimal(str(amount)) * MINOR_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: Decimal | str | int | float) -> int:
    """Percentage of a minor-unit amount, rounded half up to whole minor units."""
    value = Decimal(amount) * Decimal(str(percent)) / Decimal(100)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_minor(amount: int, currency: str | None = None) -> str:
    major, minor = divmod(abs(int(amount)), MINOR_PER_MAJOR)
    sign = "-" if amount < 0 else ""
    text = f"{sign}{major}.{minor:02d}"
    if currency:
        return f"{text} {currency}"
    return text
