"""Currency rounding and discount conversion helpers.

Every amount handled by the PDV core is a ``Decimal`` in BRL. Display
rounding is half-up to the cent; proportional shares are floored to the
cent so that a distributed amount never over-allocates.
"""

from __future__ import annotations

import enum
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class DiscountKind(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce *value* to ``Decimal`` (floats go through ``str`` to avoid binary noise)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_currency(amount: Decimal | int | float | str) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_to_cent(amount: Decimal | int | float | str) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_FLOOR)


def clamp_percentage(percent: Decimal | int | float | str) -> Decimal:
    value = to_decimal(percent)
    if value < ZERO:
        return ZERO
    if value > HUNDRED:
        return HUNDRED
    return value


def clamp_amount(amount: Decimal | int | float | str, base: Decimal | int | float | str) -> Decimal:
    """Clamp *amount* to ``[0, base]``; a non-positive base clamps everything to 0."""
    value = to_decimal(amount)
    ceiling = max(to_decimal(base), ZERO)
    if value < ZERO:
        return ZERO
    if value > ceiling:
        return ceiling
    return value


def percentage_to_amount(base: Decimal | int | float | str, percent: Decimal | int | float | str) -> Decimal:
    base_value = max(to_decimal(base), ZERO)
    return clamp_amount(base_value * clamp_percentage(percent) / HUNDRED, base_value)


def amount_to_percentage(base: Decimal | int | float | str, amount: Decimal | int | float | str) -> Decimal:
    base_value = to_decimal(base)
    if base_value <= ZERO:
        return ZERO
    return clamp_amount(amount, base_value) / base_value * HUNDRED


def discount_to_amount(
    base: Decimal | int | float | str,
    value: Decimal | int | float | str,
    kind: DiscountKind | str,
) -> Decimal:
    """Currency amount of a discount entered as *kind*, clamped to ``[0, base]``."""
    if DiscountKind(kind) is DiscountKind.PERCENTAGE:
        return percentage_to_amount(base, value)
    return clamp_amount(value, base)


def format_brl(amount: Decimal | int | float | str) -> str:
    """Render *amount* as ``R$ 1.234,56`` (display only)."""
    value = to_currency(amount)
    sign = "-" if value < ZERO else ""
    integer, cents = f"{abs(value):,.2f}".split(".")
    return f"{sign}R$ {integer.replace(',', '.')},{cents}"
