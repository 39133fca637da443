from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from livraria.app.core.session import SessionContext
from livraria.app.models.audit import AuditLog


def log_action(
    db: Session,
    ctx: SessionContext | None,
    *,
    action: str,
    resource_type: str,
    resource_id: str,
    changes: dict[str, Any] | None = None,
) -> AuditLog:
    """Queue an audit row attributed to the cashier of *ctx*.

    Never commits: the entry lands in the caller's transaction, so a rolled
    back sale or movement leaves no audit trail behind either.
    """
    entry = AuditLog(
        table_name=resource_type,
        record_id=resource_id,
        action=action,
        changed_by=ctx.responsible if ctx else None,
        register=ctx.register if ctx else None,
        new_values=changes,
    )
    db.add(entry)
    return entry
