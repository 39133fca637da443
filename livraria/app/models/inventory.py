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


class MovementType(str, enum.Enum):
    ENTRADA = "entrada"
    SAIDA = "saida"


class MovementReason(str, enum.Enum):
    VENDA = "venda"
    AJUSTE = "ajuste"
    COMPRA = "compra"
    ESTORNO = "estorno"


class Book(Base):
    """Sellable title.

    NOTE: `quantity` must only change as a side effect of a StockMovement
    (see services/stock.py). Initial stock is whatever the book was created
    with; from then on the ledger accounts for every unit.
    """

    __tablename__ = "books"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    isbn: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    publisher: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    purchase_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    selling_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    movements: Mapped[list[StockMovement]] = relationship(back_populates="book")

    __table_args__ = (
        CheckConstraint("selling_price >= 0", name="ck_book_selling_price_non_negative"),
        CheckConstraint("purchase_price >= 0", name="ck_book_purchase_price_non_negative"),
        CheckConstraint("quantity >= 0", name="ck_book_quantity_non_negative"),
        Index("ix_books_title", "title"),
    )


class StockMovement(Base):
    """Append-only ledger of every inventory change. Rows are never updated."""

    __tablename__ = "stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    book_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("books.id"), nullable=False
    )
    type: Mapped[MovementType] = mapped_column(
        Enum(
            MovementType,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    responsible: Mapped[str] = mapped_column(String(255), nullable=False)
    # Populated for movements written by the sale finalizer. Older rows only
    # carry the "Venda #<id>" token in `notes` (see stock.derive_sale_id).
    sale_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("sales.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    book: Mapped[Book] = relationship(back_populates="movements")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_qty_positive"),
        Index("ix_stock_movements_book", "book_id"),
        Index("ix_stock_movements_created_at", "created_at"),
        Index("ix_stock_movements_sale", "sale_id"),
    )
