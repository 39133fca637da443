"""Register session context.

A ``SessionContext`` is created at login and torn down at logout. The stock
ledger and the sale finalizer receive it explicitly so that the cashier
identity recorded on every movement never comes from ambient state.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone

from livraria.app.core.exceptions import SessionClosedError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionContext:
    user_id: str
    responsible: str
    register: str = "caixa-1"
    token: str = field(default_factory=lambda: secrets.token_urlsafe(24))
    opened_at: datetime = field(default_factory=_utcnow)
    closed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.closed_at is None

    def require_active(self) -> SessionContext:
        if not self.is_active:
            raise SessionClosedError()
        return self

    def close(self) -> None:
        if self.closed_at is None:
            self.closed_at = _utcnow()


class SessionRegistry:
    """In-memory map of open register sessions keyed by token.

    Single-process only. With multiple replicas, back this with Redis.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionContext] = {}

    def open(self, user_id: str, responsible: str, register: str = "caixa-1") -> SessionContext:
        ctx = SessionContext(user_id=user_id, responsible=responsible, register=register)
        self._sessions[ctx.token] = ctx
        return ctx

    def close(self, token: str) -> SessionContext | None:
        ctx = self._sessions.pop(token, None)
        if ctx is not None:
            ctx.close()
        return ctx

    def get(self, token: str) -> SessionContext | None:
        return self._sessions.get(token)

    def clear(self) -> None:
        for ctx in self._sessions.values():
            ctx.close()
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


session_registry = SessionRegistry()
