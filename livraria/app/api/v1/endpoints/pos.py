from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from livraria.app.api.deps import get_session_context, http_error
from livraria.app.core.database import get_db
from livraria.app.core.exceptions import PersistenceFailure
from livraria.app.core.session import SessionContext
from livraria.app.schemas.pos import (
    CancelSaleRequest,
    FinalizedSaleOut,
    SaleDetailOut,
    SaleRequest,
    SaleStatusUpdate,
)
from livraria.app.services.pos import (
    cancel_sale,
    finalized_sale_to_out,
    process_sale,
    update_sale_payment_status,
)
from livraria.app.services.sales import get_sale_detail

router = APIRouter()


# ─── PDV Sales ───────────────────────────────────────────────────────────────


@router.post("/sale", response_model=FinalizedSaleOut)
def create_sale(
    payload: SaleRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> FinalizedSaleOut:
    try:
        result = process_sale(db, ctx, payload)
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)
    return finalized_sale_to_out(result)


@router.post("/sales/{sale_id}/cancel", response_model=SaleDetailOut)
def cancel(
    sale_id: UUID,
    payload: CancelSaleRequest | None = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> SaleDetailOut:
    try:
        sale = cancel_sale(db, ctx, sale_id, notes=payload.notes if payload else None)
        return get_sale_detail(db, sale.id)
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)


@router.post("/sales/{sale_id}/status", response_model=SaleDetailOut)
def change_status(
    sale_id: UUID,
    payload: SaleStatusUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> SaleDetailOut:
    try:
        sale = update_sale_payment_status(db, ctx, sale_id, payload.status.value, notes=payload.notes)
        return get_sale_detail(db, sale.id)
    except (ValueError, PersistenceFailure) as e:
        raise http_error(e)
