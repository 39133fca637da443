from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, field_validator

from livraria.app.models.inventory import MovementReason, MovementType


class BookOut(BaseModel):
    id: UUID
    title: str
    author: str | None
    isbn: str | None
    selling_price: Decimal
    quantity: int
    minimum_stock: int

    class Config:
        from_attributes = True


# ─── Stock Movements ────────────────────────────────────────────────────────


class ManualMovementReason(str, Enum):
    """Reasons an operator may record by hand.

    ``venda`` and ``estorno`` are written only by sale finalization and
    cancellation, which tie the movement to its sale.
    """

    AJUSTE = MovementReason.AJUSTE.value
    COMPRA = MovementReason.COMPRA.value


class StockMovementCreate(BaseModel):
    book_id: UUID
    type: MovementType
    quantity: int
    reason: ManualMovementReason
    notes: str | None = None

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be greater than zero")
        return v


class InventoryAdjustRequest(BaseModel):
    new_quantity: int
    notes: str | None = None

    @field_validator("new_quantity")
    @classmethod
    def quantity_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Counted quantity must be non-negative")
        return v


class RestockRequest(BaseModel):
    quantity: int
    notes: str | None = None

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be greater than zero")
        return v


class StockMovementOut(BaseModel):
    id: UUID
    book_id: UUID
    book_title: str | None = None
    type: str
    quantity: int
    reason: str
    notes: str | None
    responsible: str
    created_at: str
    sale_id: str | None = None
