from __future__ import annotations

from pydantic import BaseModel, field_validator


class SessionOpenRequest(BaseModel):
    user_id: str
    responsible: str
    register: str = "caixa-1"

    @field_validator("user_id", "responsible")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class SessionOut(BaseModel):
    token: str
    user_id: str
    responsible: str
    register: str
    opened_at: str
