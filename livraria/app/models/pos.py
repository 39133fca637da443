from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livraria.app.core.database import Base
from livraria.app.models.customer import Customer
from livraria.app.models.inventory import Book


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"
    TRANSFER = "transfer"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    CANCELED = "canceled"


def _enum_values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


class Sale(Base):
    """Sale header. Immutable once written, except for cancellation."""

    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.PAID,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Client-generated key; a second finalize with the same key replays the sale
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    customer: Mapped[Customer | None] = relationship(back_populates="sales")
    items: Mapped[list[SaleItem]] = relationship(
        back_populates="sale", order_by="SaleItem.position"
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_sale_total_non_negative"),
        Index("ix_sales_customer", "customer_id"),
        Index("ix_sales_created_at", "created_at"),
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sales.id"), nullable=False
    )
    book_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("books.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    discount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )

    sale: Mapped[Sale] = relationship(back_populates="items")
    book: Mapped[Book] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_item_qty_positive"),
        CheckConstraint("discount >= 0", name="ck_sale_item_discount_non_negative"),
        CheckConstraint("total >= 0", name="ck_sale_item_total_non_negative"),
        Index("ix_sale_items_sale", "sale_id"),
        Index("ix_sale_items_book", "book_id"),
    )
