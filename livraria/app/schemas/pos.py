from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator


# ─── Enums ───────────────────────────────────────────────────────────────────


class PaymentMethodEnum(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"
    TRANSFER = "transfer"


class DiscountKindEnum(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PaymentStatusEnum(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    CANCELED = "canceled"


# ─── Request ──────────────────────────────────────────────────────────────────


class CartLine(BaseModel):
    book_id: UUID
    quantity: int
    discount: Decimal = Decimal("0")
    discount_kind: DiscountKindEnum = DiscountKindEnum.FIXED

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be greater than zero")
        return v


class GeneralDiscountIn(BaseModel):
    amount: Decimal
    kind: DiscountKindEnum = DiscountKindEnum.FIXED


class SaleRequest(BaseModel):
    items: list[CartLine]
    customer_id: UUID | None = None
    payment_method: PaymentMethodEnum = PaymentMethodEnum.CASH
    general_discount: GeneralDiscountIn | None = None
    idempotency_key: str | None = None
    notes: str | None = None

    @field_validator("items")
    @classmethod
    def at_least_one_item(cls, v: list[CartLine]) -> list[CartLine]:
        if not v:
            raise ValueError("Cart must contain at least one item")
        return v

    @model_validator(mode="after")
    def unique_books(self) -> "SaleRequest":
        ids = [line.book_id for line in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("Each book may appear only once in the cart")
        return self


class CancelSaleRequest(BaseModel):
    notes: str | None = None


class SaleStatusUpdate(BaseModel):
    status: PaymentStatusEnum
    notes: str | None = None


# ─── Response ─────────────────────────────────────────────────────────────────


class SaleLineOut(BaseModel):
    book_id: UUID
    title: str | None = None
    quantity: int
    unit_price: str
    discount: str
    total: str


class FinalizedSaleOut(BaseModel):
    sale_id: UUID
    created_at: str
    items: list[SaleLineOut]
    subtotal: str
    discount_total: str
    general_discount: str
    total: str
    total_display: str
    payment_method: str
    replayed: bool = False


class SaleOut(BaseModel):
    id: UUID
    customer_id: UUID | None
    customer_name: str | None = None
    user_id: str
    total: str
    payment_method: str
    payment_status: str
    notes: str | None
    created_at: str


class SaleDetailOut(SaleOut):
    items: list[SaleLineOut]


class ProductSaleHistoryOut(BaseModel):
    id: UUID
    sale_id: UUID
    date: str | None
    quantity: int
    unit_price: str
    discount: str
    total: str
    customer_name: str
    payment_method: str
    payment_status: str
