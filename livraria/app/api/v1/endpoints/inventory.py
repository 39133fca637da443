from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from livraria.app.api.deps import get_session_context, http_error
from livraria.app.core.database import get_db
from livraria.app.core.exceptions import BookNotFoundError, PersistenceFailure
from livraria.app.core.session import SessionContext
from livraria.app.models.inventory import Book
from livraria.app.schemas.inventory import (
    BookOut,
    InventoryAdjustRequest,
    RestockRequest,
    StockMovementCreate,
    StockMovementOut,
)
from livraria.app.services.stock import (
    adjust_inventory,
    list_all_movements,
    list_low_stock_books,
    list_movements_for_book,
    movement_to_out,
    record_movement,
    restock,
    search_books,
)

router = APIRouter()


# ─── Books ───────────────────────────────────────────────────────────────────


@router.get("/books", response_model=list[BookOut])
def list_books(
    search: str | None = Query(None, description="Search by title, author, or ISBN"),
    low_stock: bool = Query(False, description="Only books at or below their minimum stock"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[Book]:
    if low_stock:
        return list_low_stock_books(db)
    return search_books(db, search, limit=limit)


@router.get("/books/{book_id}", response_model=BookOut)
def get_book(
    book_id: UUID,
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> Book:
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise http_error(BookNotFoundError(book_id))
    return book


# ─── Stock Movements ────────────────────────────────────────────────────────


@router.post("/movements", response_model=StockMovementOut, status_code=status.HTTP_201_CREATED)
def create_movement(
    payload: StockMovementCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> StockMovementOut:
    try:
        movement = record_movement(
            db,
            ctx,
            book_id=payload.book_id,
            type=payload.type,
            quantity=payload.quantity,
            reason=payload.reason.value,
            notes=payload.notes,
        )
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)
    return movement_to_out(db, movement)


@router.get("/movements", response_model=list[StockMovementOut])
def get_movements(
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[StockMovementOut]:
    return list_all_movements(db, limit=limit)


@router.get("/books/{book_id}/movements", response_model=list[StockMovementOut])
def get_book_movements(
    book_id: UUID,
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[StockMovementOut]:
    try:
        return list_movements_for_book(db, book_id)
    except ValueError as e:
        raise http_error(e)


@router.post("/books/{book_id}/adjust", response_model=StockMovementOut)
def adjust_book(
    book_id: UUID,
    payload: InventoryAdjustRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> StockMovementOut:
    try:
        movement = adjust_inventory(db, ctx, book_id, payload.new_quantity, notes=payload.notes)
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)
    return movement_to_out(db, movement)


@router.post("/books/{book_id}/restock", response_model=StockMovementOut)
def restock_book(
    book_id: UUID,
    payload: RestockRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> StockMovementOut:
    try:
        movement = restock(db, ctx, book_id, payload.quantity, notes=payload.notes)
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)
    return movement_to_out(db, movement)
