from __future__ import annotations

from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload, selectinload

from livraria.app.core.config import settings
from livraria.app.core.exceptions import BookNotFoundError, SaleNotFoundError
from livraria.app.core.money import to_currency
from livraria.app.models.inventory import Book
from livraria.app.models.pos import Sale, SaleItem
from livraria.app.schemas.pos import (
    ProductSaleHistoryOut,
    SaleDetailOut,
    SaleLineOut,
    SaleOut,
)

UNIDENTIFIED_CUSTOMER = "Cliente não identificado"


def _iso(value) -> str:
    return value.isoformat(timespec="seconds") if value else ""


def sale_item_to_out(item: SaleItem) -> SaleLineOut:
    return SaleLineOut(
        book_id=item.book_id,
        title=item.book.title if item.book else None,
        quantity=item.quantity,
        unit_price=str(to_currency(item.unit_price)),
        discount=str(to_currency(item.discount)),
        total=str(to_currency(item.total)),
    )


def _sale_to_out(sale: Sale) -> SaleOut:
    return SaleOut(
        id=sale.id,
        customer_id=sale.customer_id,
        customer_name=sale.customer.name if sale.customer else None,
        user_id=sale.user_id,
        total=str(to_currency(sale.total)),
        payment_method=sale.payment_method.value,
        payment_status=sale.payment_status.value,
        notes=sale.notes,
        created_at=_iso(sale.created_at),
    )


def list_recent_sales(db: Session, limit: int | None = None) -> list[SaleOut]:
    """Most recent sales with their customer, newest first."""
    sales = (
        db.query(Sale)
        .options(joinedload(Sale.customer))
        .order_by(desc(Sale.created_at))
        .limit(limit or settings.RECENT_SALES_LIMIT)
        .all()
    )
    return [_sale_to_out(sale) for sale in sales]


def get_sale_detail(db: Session, sale_id: UUID) -> SaleDetailOut:
    """Sale header plus its items, for reprinting a receipt."""
    sale = (
        db.query(Sale)
        .options(
            joinedload(Sale.customer),
            selectinload(Sale.items).joinedload(SaleItem.book),
        )
        .filter(Sale.id == sale_id)
        .first()
    )
    if not sale:
        raise SaleNotFoundError(sale_id)

    header = _sale_to_out(sale)
    return SaleDetailOut(
        **header.model_dump(),
        items=[sale_item_to_out(item) for item in sale.items],
    )


def product_sale_history(db: Session, book_id: UUID, limit: int = 50) -> list[ProductSaleHistoryOut]:
    """Every sale line for one book, newest first."""
    if not db.query(Book.id).filter(Book.id == book_id).first():
        raise BookNotFoundError(book_id)

    items = (
        db.query(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .options(joinedload(SaleItem.sale).joinedload(Sale.customer))
        .filter(SaleItem.book_id == book_id)
        .order_by(desc(Sale.created_at))
        .limit(limit)
        .all()
    )

    results: list[ProductSaleHistoryOut] = []
    for item in items:
        sale = item.sale
        customer = sale.customer
        results.append(ProductSaleHistoryOut(
            id=item.id,
            sale_id=sale.id,
            date=_iso(sale.created_at) or None,
            quantity=item.quantity,
            unit_price=str(to_currency(item.unit_price)),
            discount=str(to_currency(item.discount)),
            total=str(to_currency(item.total)),
            customer_name=customer.name if customer else UNIDENTIFIED_CUSTOMER,
            payment_method=sale.payment_method.value,
            payment_status=sale.payment_status.value,
        ))
    return results
