from __future__ import annotations

from fastapi import Header, HTTPException, status

from livraria.app.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    PersistenceFailure,
    SaleAlreadyCanceledError,
    SaleNotFoundError,
    SessionClosedError,
)
from livraria.app.core.session import SessionContext, session_registry

SESSION_HEADER = "X-Session-Token"


def get_session_context(
    x_session_token: str | None = Header(default=None),
) -> SessionContext:
    """Resolve the register session that issued the request."""
    session_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Register session is closed. Log in again.",
    )
    if not x_session_token:
        raise session_exception

    ctx = session_registry.get(x_session_token)
    if ctx is None or not ctx.is_active:
        raise session_exception
    return ctx


def http_error(exc: Exception) -> HTTPException:
    """Map a domain error to the HTTP status the PDV front-end expects."""
    if isinstance(exc, SessionClosedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, (BookNotFoundError, SaleNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InsufficientStockError, SaleAlreadyCanceledError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PersistenceFailure):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"step": exc.step, "message": exc.message},
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
