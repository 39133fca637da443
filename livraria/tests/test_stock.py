"""Tests for the stock ledger."""
from __future__ import annotations

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from livraria.app.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    NoAdjustmentNeededError,
    SessionClosedError,
)
from livraria.app.core.session import SessionContext
from livraria.app.models.audit import AuditLog
from livraria.app.models.inventory import Book, MovementReason, MovementType, StockMovement
from livraria.app.services.stock import (
    adjust_inventory,
    book_balance_from_ledger,
    derive_sale_id,
    list_all_movements,
    list_low_stock_books,
    list_movements_for_book,
    record_movement,
    restock,
    search_books,
)


def _movements(db: Session, book: Book) -> list[StockMovement]:
    return db.query(StockMovement).filter(StockMovement.book_id == book.id).all()


# ─── TestRecordMovement ──────────────────────────────────────────────────────


class TestRecordMovement:
    def test_entrada_increases_stock(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        movement = record_movement(
            db, ctx, book_id=book_a.id, type=MovementType.ENTRADA,
            quantity=5, reason=MovementReason.COMPRA,
        )
        db.refresh(book_a)
        assert book_a.quantity == 55
        assert movement.responsible == "Maria Caixa"
        assert movement.reason == "compra"

    def test_saida_decreases_stock(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        record_movement(db, ctx, book_id=book_a.id, type="saida", quantity=20, reason="ajuste")
        db.refresh(book_a)
        assert book_a.quantity == 30

    def test_saida_beyond_stock_rejected(self, db: Session, ctx: SessionContext) -> None:
        book = Book(title="Poucos", selling_price=10, quantity=3)
        db.add(book)
        db.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            record_movement(db, ctx, book_id=book.id, type="saida", quantity=5, reason="venda")

        assert exc_info.value.available == 3
        assert exc_info.value.requested == 5
        db.refresh(book)
        assert book.quantity == 3
        assert _movements(db, book) == []

    def test_saida_of_entire_stock_allowed(self, db: Session, ctx: SessionContext, book_b: Book) -> None:
        record_movement(db, ctx, book_id=book_b.id, type="saida", quantity=30, reason="ajuste")
        db.refresh(book_b)
        assert book_b.quantity == 0

    @pytest.mark.parametrize("qty", [0, -1])
    def test_non_positive_quantity_rejected(
        self, db: Session, ctx: SessionContext, book_a: Book, qty: int
    ) -> None:
        with pytest.raises(InvalidQuantityError):
            record_movement(db, ctx, book_id=book_a.id, type="entrada", quantity=qty, reason="compra")
        assert _movements(db, book_a) == []

    def test_unknown_book(self, db: Session, ctx: SessionContext) -> None:
        with pytest.raises(BookNotFoundError):
            record_movement(db, ctx, book_id=uuid.uuid4(), type="entrada", quantity=1, reason="compra")

    def test_closed_session_rejected(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        ctx.close()
        with pytest.raises(SessionClosedError):
            record_movement(db, ctx, book_id=book_a.id, type="entrada", quantity=1, reason="compra")

    def test_writes_audit_entry(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        movement = restock(db, ctx, book_a.id, 4)
        entry = db.query(AuditLog).filter(AuditLog.record_id == str(movement.id)).one()
        assert entry.action == "STOCK_MOVEMENT"
        assert entry.changed_by == "Maria Caixa"
        assert entry.register == "caixa-1"


# ─── TestStockInvariant ──────────────────────────────────────────────────────


class TestStockInvariant:
    def test_quantity_matches_ledger_replay(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        initial = book_a.quantity
        sequence = [("entrada", 7), ("saida", 12), ("saida", 40), ("entrada", 3), ("saida", 8)]
        for movement_type, qty in sequence:
            record_movement(db, ctx, book_id=book_a.id, type=movement_type, quantity=qty, reason="ajuste")

        # one more saida than what is left must be refused
        db.refresh(book_a)
        with pytest.raises(InsufficientStockError):
            record_movement(
                db, ctx, book_id=book_a.id, type="saida",
                quantity=book_a.quantity + 1, reason="ajuste",
            )

        db.refresh(book_a)
        assert book_a.quantity == initial + 7 + 3 - 12 - 40 - 8
        assert book_a.quantity == book_balance_from_ledger(db, book_a.id, initial)
        assert book_a.quantity >= 0


# ─── TestAdjustInventory ─────────────────────────────────────────────────────


class TestAdjustInventory:
    def test_adjust_up(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        movement = adjust_inventory(db, ctx, book_a.id, 58)
        db.refresh(book_a)
        assert book_a.quantity == 58
        assert movement.type is MovementType.ENTRADA
        assert movement.quantity == 8
        assert movement.reason == "ajuste"
        assert movement.notes == "Ajuste de inventário: 50 → 58"

    def test_adjust_down(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        movement = adjust_inventory(db, ctx, book_a.id, 0, notes="Contagem anual")
        db.refresh(book_a)
        assert book_a.quantity == 0
        assert movement.type is MovementType.SAIDA
        assert movement.quantity == 50
        assert movement.notes == "Contagem anual"

    def test_same_quantity_needs_no_adjustment(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        with pytest.raises(NoAdjustmentNeededError):
            adjust_inventory(db, ctx, book_a.id, book_a.quantity)
        assert _movements(db, book_a) == []

    def test_negative_target_rejected(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        with pytest.raises(InvalidQuantityError):
            adjust_inventory(db, ctx, book_a.id, -1)


# ─── TestDeriveSaleId ────────────────────────────────────────────────────────


class TestDeriveSaleId:
    def test_from_notes(self) -> None:
        movement = SimpleNamespace(type="saida", reason="venda", notes="Venda #abc-123", sale_id=None)
        assert derive_sale_id(movement) == "abc-123"

    def test_column_wins_over_notes(self) -> None:
        sale_id = uuid.uuid4()
        movement = SimpleNamespace(
            type=MovementType.SAIDA, reason="venda", notes="Venda #old-id", sale_id=sale_id
        )
        assert derive_sale_id(movement) == str(sale_id)

    def test_unrelated_notes(self) -> None:
        movement = SimpleNamespace(type="saida", reason="venda", notes="Avaria no transporte", sale_id=None)
        assert derive_sale_id(movement) is None

    @pytest.mark.parametrize(
        "movement_type, reason",
        [("saida", "ajuste"), ("entrada", "venda"), ("entrada", "estorno")],
    )
    def test_only_sales_qualify(self, movement_type: str, reason: str) -> None:
        movement = SimpleNamespace(type=movement_type, reason=reason, notes="Venda #abc-123", sale_id=None)
        assert derive_sale_id(movement) is None


# ─── TestListing ─────────────────────────────────────────────────────────────


class TestListing:
    def test_book_movements_newest_first(self, db: Session, ctx: SessionContext, book_a: Book) -> None:
        restock(db, ctx, book_a.id, 1, notes="primeira")
        restock(db, ctx, book_a.id, 2, notes="segunda")

        result = list_movements_for_book(db, book_a.id)

        assert [m.notes for m in result] == ["segunda", "primeira"]
        assert result[0].book_title == "Dom Casmurro"
        assert result[0].sale_id is None

    def test_all_movements_respects_limit(
        self, db: Session, ctx: SessionContext, book_a: Book, book_b: Book
    ) -> None:
        restock(db, ctx, book_a.id, 1)
        restock(db, ctx, book_b.id, 1)
        restock(db, ctx, book_a.id, 1)

        assert len(list_all_movements(db)) == 3
        limited = list_all_movements(db, limit=2)
        assert len(limited) == 2
        assert limited[0].book_title == "Dom Casmurro"


# ─── TestBookSearch ──────────────────────────────────────────────────────────


def _add_book(db: Session, title: str, quantity: int, minimum_stock: int = 0, **extra) -> Book:
    book = Book(title=title, selling_price=Decimal("20.00"), quantity=quantity, minimum_stock=minimum_stock, **extra)
    db.add(book)
    db.commit()
    return book


class TestBookSearch:
    def test_only_books_in_stock(self, db: Session, book_a: Book, book_b: Book) -> None:
        _add_book(db, "Esgotado", quantity=0)
        assert [b.title for b in search_books(db)] == ["Dom Casmurro", "Vidas Secas"]
        assert len(search_books(db, available_only=False)) == 3

    def test_matches_title_author_and_isbn(self, db: Session, book_a: Book, book_b: Book) -> None:
        assert [b.id for b in search_books(db, "casmurro")] == [book_a.id]
        assert [b.id for b in search_books(db, "Graciliano")] == [book_b.id]
        assert [b.id for b in search_books(db, "9788501")] == [book_b.id]
        assert search_books(db, "Saramago") == []

    def test_blank_search_lists_everything(self, db: Session, book_a: Book, book_b: Book) -> None:
        assert len(search_books(db, "   ")) == 2

    def test_respects_limit(self, db: Session, book_a: Book, book_b: Book) -> None:
        assert [b.title for b in search_books(db, limit=1)] == ["Dom Casmurro"]


class TestLowStock:
    def test_at_or_below_minimum(self, db: Session, book_a: Book) -> None:
        at_minimum = _add_book(db, "No limite", quantity=4, minimum_stock=4)
        below = _add_book(db, "Quase acabando", quantity=1, minimum_stock=3)
        _add_book(db, "Folgado", quantity=10, minimum_stock=3)

        assert [b.id for b in list_low_stock_books(db)] == [below.id, at_minimum.id]

    def test_sale_can_push_book_into_low_stock(
        self, db: Session, ctx: SessionContext, book_b: Book
    ) -> None:
        assert list_low_stock_books(db) == []
        record_movement(
            db, ctx, book_id=book_b.id, type="saida", quantity=27, reason=MovementReason.VENDA
        )
        assert [b.id for b in list_low_stock_books(db)] == [book_b.id]
