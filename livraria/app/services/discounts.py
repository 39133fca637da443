"""General (checkout-time) discount allocation.

Sales carry no order-level discount column: a general discount is folded
into the per-item discounts so that every persisted sale item, and every
report built from them, already reflects it.

Rounding policy: intermediate shares are floored to the cent and the last
item absorbs the remainder, so the shares always add up to the general
amount exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from livraria.app.core.money import (
    ZERO,
    DiscountKind,
    discount_to_amount,
    floor_to_cent,
    to_currency,
    to_decimal,
)
from livraria.app.services.cart import Cart

logger = logging.getLogger(__name__)


@dataclass
class GeneralDiscount:
    amount: Decimal
    kind: DiscountKind = DiscountKind.FIXED

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        self.kind = DiscountKind(self.kind)

    def to_amount(self, base: Decimal) -> Decimal:
        """BRL value of this discount against *base*, rounded half-up and capped at *base*."""
        return min(to_currency(discount_to_amount(base, self.amount, self.kind)), max(base, ZERO))


@dataclass
class AllocationResult:
    general_amount: Decimal = ZERO
    shares: dict[UUID, Decimal] = field(default_factory=dict)
    unallocated: Decimal = ZERO

    @property
    def allocated(self) -> Decimal:
        return sum(self.shares.values(), ZERO)

    @property
    def applied(self) -> bool:
        return self.general_amount > ZERO


def compute_proportional_shares(values: list[Decimal], amount: Decimal) -> list[Decimal]:
    """Split *amount* across *values* proportionally.

    Every share but the last is floored to the cent; the last one takes
    whatever is left, so ``sum(result) == amount``.
    """
    if not values:
        return []
    amount = to_decimal(amount)
    if amount <= ZERO:
        return [ZERO for _ in values]

    total_value = sum(values, ZERO)
    if total_value <= ZERO:
        return [ZERO for _ in values[:-1]] + [amount]

    shares = [floor_to_cent(amount * value / total_value) for value in values[:-1]]
    shares.append(amount - sum(shares, ZERO))
    return shares


def allocate_general_discount(cart: Cart, discount: GeneralDiscount | None) -> AllocationResult:
    """Fold *discount* into the line discounts of *cart*, in place.

    Existing line discounts are converted to their exact fixed amount (no
    rounding, so the cart total only moves by the general amount), then each
    line receives its share on top of what it already had. A share that
    would push a line past its value is moved to the next lines with room
    left; whatever still cannot be placed is reported as ``unallocated``.
    Never raises on an empty cart or a non-positive discount, and leaves
    the cart untouched in both cases.
    """
    if discount is None or cart.is_empty:
        return AllocationResult()

    general_amount = discount.to_amount(cart.total)
    if general_amount <= ZERO:
        return AllocationResult()

    for item in cart:
        item.discount = item.effective_discount
        item.discount_kind = DiscountKind.FIXED

    items = cart.items
    if len(items) == 1:
        raw_shares = [general_amount]
    else:
        raw_shares = compute_proportional_shares([item.line_value for item in items], general_amount)

    placed: dict[UUID, Decimal] = {}
    overflow = ZERO
    for item, share in zip(items, raw_shares):
        take = min(share, item.headroom)
        placed[item.product_id] = take
        overflow += share - take

    if overflow > ZERO:
        logger.debug("Redistributing %s of general discount past full lines", overflow)
        for item in items:
            room = item.headroom - placed[item.product_id]
            if room <= ZERO:
                continue
            extra = min(room, overflow)
            placed[item.product_id] += extra
            overflow -= extra
            if overflow <= ZERO:
                break

    for item in items:
        item.discount = item.discount + placed[item.product_id]

    if overflow > ZERO:
        logger.warning("General discount left %s unallocated", overflow)

    return AllocationResult(
        general_amount=general_amount,
        shares=placed,
        unallocated=overflow,
    )
