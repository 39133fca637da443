from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from livraria.app.api.deps import get_session_context
from livraria.app.core.config import settings
from livraria.app.core.database import get_db
from livraria.app.core.session import SessionContext
from livraria.app.models.customer import Customer
from livraria.app.schemas.customer import CustomerOut

router = APIRouter()


@router.get("/", response_model=list[CustomerOut])
def list_customers(
    search: str | None = Query(None, description="Search by name, email, phone, or CPF"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    _ctx: SessionContext = Depends(get_session_context),
) -> list[Customer]:
    query = db.query(Customer)
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(
            Customer.name.ilike(like)
            | Customer.email.ilike(like)
            | Customer.phone.ilike(like)
            | Customer.cpf.ilike(like)
        )
    return query.order_by(Customer.name).limit(limit or settings.SEARCH_RESULT_LIMIT).all()
