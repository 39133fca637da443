from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from livraria.app.api.deps import get_session_context, http_error
from livraria.app.core.database import get_db
from livraria.app.core.session import SessionContext
from livraria.app.schemas.pos import ProductSaleHistoryOut, SaleDetailOut, SaleOut
from livraria.app.services.sales import (
    get_sale_detail,
    list_recent_sales,
    product_sale_history,
)

router = APIRouter()


@router.get("", response_model=list[SaleOut])
def get_recent_sales(
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[SaleOut]:
    return list_recent_sales(db, limit=limit)


@router.get("/books/{book_id}/history", response_model=list[ProductSaleHistoryOut])
def get_book_history(
    book_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[ProductSaleHistoryOut]:
    try:
        return product_sale_history(db, book_id, limit=limit)
    except ValueError as e:
        raise http_error(e)


@router.get("/{sale_id}", response_model=SaleDetailOut)
def get_sale(
    sale_id: UUID,
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> SaleDetailOut:
    try:
        return get_sale_detail(db, sale_id)
    except ValueError as e:
        raise http_error(e)
