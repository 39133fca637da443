from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class CustomerOut(BaseModel):
    id: UUID
    name: str
    email: str | None
    phone: str | None
    cpf: str | None

    class Config:
        from_attributes = True
