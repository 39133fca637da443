"""In-memory PDV cart.

One cart per register session, mutated synchronously by UI events. Totals
are derived on every read, so callers never observe a stale total.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from livraria.app.core.money import (
    ZERO,
    DiscountKind,
    discount_to_amount,
    to_currency,
    to_decimal,
)
from livraria.app.models.inventory import Book


@dataclass
class ProductRef:
    id: UUID
    title: str
    unit_price: Decimal
    quantity: int

    @classmethod
    def from_book(cls, book: Book) -> ProductRef:
        return cls(
            id=book.id,
            title=book.title,
            unit_price=to_decimal(book.selling_price),
            quantity=book.quantity,
        )


@dataclass
class CustomerRef:
    id: UUID
    name: str


@dataclass
class LineItem:
    product: ProductRef
    quantity: int = 1
    discount: Decimal = ZERO
    discount_kind: DiscountKind = DiscountKind.FIXED

    @property
    def product_id(self) -> UUID:
        return self.product.id

    @property
    def line_value(self) -> Decimal:
        return to_decimal(self.product.unit_price) * self.quantity

    @property
    def effective_discount(self) -> Decimal:
        """Discount in BRL, never above the line value."""
        return discount_to_amount(self.line_value, self.discount, self.discount_kind)

    @property
    def headroom(self) -> Decimal:
        return self.line_value - self.effective_discount

    @property
    def line_total(self) -> Decimal:
        return self.line_value - self.effective_discount

    def normalized(self) -> LineItem:
        """Copy with the discount expressed as a fixed amount, rounded to the cent."""
        amount = min(to_currency(self.effective_discount), self.line_value)
        return LineItem(
            product=self.product,
            quantity=self.quantity,
            discount=amount,
            discount_kind=DiscountKind.FIXED,
        )


@dataclass
class Cart:
    customer: CustomerRef | None = None
    _items: dict[UUID, LineItem] = field(default_factory=dict, repr=False)

    # ── Derived totals ───────────────────────────────────────────────────

    @property
    def items(self) -> list[LineItem]:
        return list(self._items.values())

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_value for item in self._items.values()), ZERO)

    @property
    def line_discount_total(self) -> Decimal:
        return sum((item.effective_discount for item in self._items.values()), ZERO)

    @property
    def total(self) -> Decimal:
        return max(self.subtotal - self.line_discount_total, ZERO)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(list(self._items.values()))

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._items

    def get(self, product_id: UUID) -> LineItem | None:
        return self._items.get(product_id)

    # ── Mutations ────────────────────────────────────────────────────────

    def add_item(self, product: ProductRef) -> None:
        """Add one unit of *product*.

        Out-of-stock products are ignored. Over-selling an in-stock product
        is not blocked here; the finalizer re-checks stock at checkout.
        """
        if product.quantity <= 0:
            return
        existing = self._items.get(product.id)
        if existing:
            self.update_quantity(product.id, existing.quantity + 1)
        else:
            self._items[product.id] = LineItem(product=product)

    def remove_item(self, product_id: UUID) -> None:
        self._items.pop(product_id, None)

    def update_quantity(self, product_id: UUID, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        item = self._items.get(product_id)
        if item:
            item.quantity = quantity

    def update_discount(
        self,
        product_id: UUID,
        amount: Decimal | int | float | str,
        kind: DiscountKind | str = DiscountKind.FIXED,
    ) -> None:
        """Set the line discount as entered; bounds are the caller's concern."""
        item = self._items.get(product_id)
        if item:
            item.discount = to_decimal(amount)
            item.discount_kind = DiscountKind(kind)

    def set_customer(self, customer: CustomerRef | None) -> None:
        self.customer = customer

    def clear(self) -> None:
        self._items.clear()
        self.customer = None

    def snapshot(self) -> Cart:
        return copy.deepcopy(self)
