from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from livraria.app.core.session import SessionContext, session_registry
from livraria.app.schemas.session import SessionOpenRequest, SessionOut

router = APIRouter()


def _session_out(ctx: SessionContext) -> SessionOut:
    return SessionOut(
        token=ctx.token,
        user_id=ctx.user_id,
        responsible=ctx.responsible,
        register=ctx.register,
        opened_at=ctx.opened_at.isoformat(timespec="seconds"),
    )


@router.post("", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def open_session(payload: SessionOpenRequest) -> SessionOut:
    ctx = session_registry.open(
        user_id=payload.user_id,
        responsible=payload.responsible,
        register=payload.register,
    )
    return _session_out(ctx)


@router.delete("/{token}", status_code=status.HTTP_204_NO_CONTENT)
def close_session(token: str) -> None:
    if session_registry.close(token) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
