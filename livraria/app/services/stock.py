"""Stock ledger.

Every change to ``Book.quantity`` goes through ``record_movement``, which
appends a ``StockMovement`` and applies the signed quantity in the same
transaction. For any book the invariant is::

    quantity == initial_quantity + Σ entrada − Σ saida
"""

from __future__ import annotations

import enum
import logging
import re
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from livraria.app.core.config import settings
from livraria.app.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    NoAdjustmentNeededError,
    PersistenceFailure,
)
from livraria.app.core.session import SessionContext
from livraria.app.models.inventory import Book, MovementReason, MovementType, StockMovement
from livraria.app.schemas.inventory import StockMovementOut
from livraria.app.services.audit import log_action
from livraria.app.services.cart import ProductRef

logger = logging.getLogger(__name__)

# Token written into movement notes by the sale finalizer, e.g. "Venda #3f2c-...".
SALE_REFERENCE_PATTERN = re.compile(r"Venda #([a-zA-Z0-9-]+)")


def sale_reference(sale_id: UUID | str) -> str:
    return f"Venda #{sale_id}"


def _get_book(db: Session, book_id: UUID, *, for_update: bool = False) -> Book:
    query = db.query(Book).filter(Book.id == book_id)
    if for_update:
        query = query.with_for_update()
    book = query.first()
    if not book:
        raise BookNotFoundError(book_id)
    return book


def get_product(db: Session, book_id: UUID) -> ProductRef:
    """Read model used by the cart: price and stock as of now."""
    return ProductRef.from_book(_get_book(db, book_id))


# ─── Movements ──────────────────────────────────────────────────────────────


def record_movement(
    db: Session,
    ctx: SessionContext,
    *,
    book_id: UUID,
    type: MovementType | str,
    quantity: int,
    reason: MovementReason | str,
    notes: str | None = None,
    sale_id: UUID | None = None,
    commit: bool = True,
) -> StockMovement:
    """Append a movement and apply it to the book's stock.

    A ``saida`` is applied as a conditional decrement
    (``WHERE quantity >= :requested``) so two registers selling the last copy
    cannot both succeed. Pass ``commit=False`` to enlist in a transaction the
    caller owns; the caller then handles rollback.
    """
    ctx.require_active()
    movement_type = MovementType(type)
    reason_value = reason.value if isinstance(reason, enum.Enum) else str(reason)

    if quantity <= 0:
        raise InvalidQuantityError(quantity)

    book = _get_book(db, book_id)
    if movement_type is MovementType.SAIDA and quantity > book.quantity:
        logger.warning(
            "Rejected saida of %s for book %s: only %s in stock",
            quantity, book_id, book.quantity,
        )
        raise InsufficientStockError(book.id, book.quantity, quantity, book.title)

    try:
        if movement_type is MovementType.SAIDA:
            stmt = (
                update(Book)
                .where(Book.id == book_id, Book.quantity >= quantity)
                .values(quantity=Book.quantity - quantity)
            )
        else:
            stmt = (
                update(Book)
                .where(Book.id == book_id)
                .values(quantity=Book.quantity + quantity)
            )
        result = db.execute(stmt.execution_options(synchronize_session=False))
        db.expire(book, ["quantity"])

        if result.rowcount != 1:
            # Another register took the stock between our read and the update
            logger.warning(
                "Concurrent saida lost the race for book %s (requested %s, left %s)",
                book_id, quantity, book.quantity,
            )
            if commit:
                db.rollback()
            raise InsufficientStockError(book.id, book.quantity, quantity, book.title)

        movement = StockMovement(
            book_id=book_id,
            type=movement_type,
            quantity=quantity,
            reason=reason_value,
            notes=notes,
            responsible=ctx.responsible,
            sale_id=sale_id,
            created_at=datetime.now(timezone.utc),
        )
        db.add(movement)
        db.flush()

        log_action(
            db,
            ctx,
            action="STOCK_MOVEMENT",
            resource_type="stock_movements",
            resource_id=str(movement.id),
            changes={
                "book": book.title,
                "type": movement_type.value,
                "quantity": quantity,
                "reason": reason_value,
                "balance": book.quantity,
                "sale_id": str(sale_id) if sale_id else None,
            },
        )

        if commit:
            db.commit()
            db.refresh(movement)
    except SQLAlchemyError as exc:
        if not commit:
            raise
        db.rollback()
        logger.exception("Stock movement for book %s rolled back", book_id)
        raise PersistenceFailure(
            "ledger", f"Stock movement could not be recorded; stock unchanged ({exc.__class__.__name__})"
        ) from exc

    logger.info(
        "Stock %s of %s for book %s (%s) by %s",
        movement_type.value, quantity, book_id, reason_value, ctx.responsible,
    )
    return movement


def adjust_inventory(
    db: Session,
    ctx: SessionContext,
    book_id: UUID,
    new_quantity: int,
    notes: str | None = None,
) -> StockMovement:
    """Reconcile the recorded stock with a physically counted quantity."""
    ctx.require_active()
    if new_quantity < 0:
        raise InvalidQuantityError(new_quantity, "Counted quantity must be non-negative")

    book = _get_book(db, book_id, for_update=True)
    current = book.quantity
    if current == new_quantity:
        raise NoAdjustmentNeededError(book_id, current)

    difference = new_quantity - current
    return record_movement(
        db,
        ctx,
        book_id=book_id,
        type=MovementType.ENTRADA if difference > 0 else MovementType.SAIDA,
        quantity=abs(difference),
        reason=MovementReason.AJUSTE,
        notes=notes or f"Ajuste de inventário: {current} → {new_quantity}",
    )


def restock(
    db: Session,
    ctx: SessionContext,
    book_id: UUID,
    quantity: int,
    notes: str | None = None,
) -> StockMovement:
    return record_movement(
        db,
        ctx,
        book_id=book_id,
        type=MovementType.ENTRADA,
        quantity=quantity,
        reason=MovementReason.COMPRA,
        notes=notes or "Reposição de estoque",
    )


# ─── Read side ──────────────────────────────────────────────────────────────


def derive_sale_id(movement: Any) -> str | None:
    """Return the id of the sale that produced *movement*, if any.

    Only ``saida``/``venda`` movements qualify. The ``sale_id`` column wins;
    rows written before it existed are matched on the ``Venda #<id>`` token
    in their notes.
    """
    movement_type = getattr(movement, "type", None)
    if isinstance(movement_type, enum.Enum):
        movement_type = movement_type.value
    reason = getattr(movement, "reason", None)
    if isinstance(reason, enum.Enum):
        reason = reason.value
    if movement_type != MovementType.SAIDA.value or reason != MovementReason.VENDA.value:
        return None

    stored = getattr(movement, "sale_id", None)
    if stored:
        return str(stored)

    notes = getattr(movement, "notes", None)
    if not notes:
        return None
    match = SALE_REFERENCE_PATTERN.search(notes)
    return match.group(1) if match else None


def search_books(
    db: Session,
    search: str | None = None,
    *,
    available_only: bool = True,
    limit: int | None = None,
) -> list[Book]:
    """Books matching *search* on title, author or ISBN, ordered by title.

    By default only books with stock are returned, which is what the PDV
    product picker offers.
    """
    query = db.query(Book)
    if available_only:
        query = query.filter(Book.quantity > 0)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Book.title.ilike(term),
                Book.author.ilike(term),
                Book.isbn.ilike(term),
            )
        )
    return query.order_by(Book.title).limit(limit or settings.SEARCH_RESULT_LIMIT).all()


def list_low_stock_books(db: Session) -> list[Book]:
    """Books at or below their minimum stock, scarcest first."""
    return (
        db.query(Book)
        .filter(Book.quantity <= Book.minimum_stock)
        .order_by(Book.quantity, Book.title)
        .all()
    )


def _movement_to_out(movement: StockMovement, book_title: str | None = None) -> StockMovementOut:
    return StockMovementOut(
        id=movement.id,
        book_id=movement.book_id,
        book_title=book_title,
        type=movement.type.value,
        quantity=movement.quantity,
        reason=movement.reason,
        notes=movement.notes,
        responsible=movement.responsible,
        created_at=movement.created_at.isoformat() if movement.created_at else "",
        sale_id=derive_sale_id(movement),
    )


def movement_to_out(db: Session, movement: StockMovement) -> StockMovementOut:
    book = db.query(Book).filter(Book.id == movement.book_id).first()
    return _movement_to_out(movement, book.title if book else None)


def list_movements_for_book(db: Session, book_id: UUID) -> list[StockMovementOut]:
    """Movements of one book, most recent first."""
    book = _get_book(db, book_id)
    movements = (
        db.query(StockMovement)
        .filter(StockMovement.book_id == book_id)
        .order_by(StockMovement.created_at.desc())
        .all()
    )
    return [_movement_to_out(m, book.title) for m in movements]


def list_all_movements(db: Session, limit: int | None = None) -> list[StockMovementOut]:
    """Most recent movements across all books."""
    rows = (
        db.query(StockMovement, Book.title)
        .join(Book, StockMovement.book_id == Book.id)
        .order_by(StockMovement.created_at.desc())
        .limit(limit or settings.DEFAULT_MOVEMENT_LIMIT)
        .all()
    )
    return [_movement_to_out(movement, title) for movement, title in rows]


def book_balance_from_ledger(db: Session, book_id: UUID, initial_quantity: int) -> int:
    """Replay the ledger: ``initial + Σ entrada − Σ saida``."""
    signed = case(
        (StockMovement.type == MovementType.ENTRADA, StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    total = db.execute(
        select(func.coalesce(func.sum(signed), 0)).where(StockMovement.book_id == book_id)
    ).scalar_one()
    return initial_quantity + int(total)
