"""
Request-scoped dependencies shared by every router.
"""
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.database.store import EntityStore
from app.features.audit.log import AuditLog, SessionAuditLog


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> EntityStore:
    """One EntityStore per request, over the request's session."""
    return EntityStore(db)


def get_audit_log(request: Request) -> AuditLog:
    """The process-wide audit log created at startup."""
    return request.app.state.audit_log


def get_audit_recorder(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> SessionAuditLog:
    """Audit sink for mutating routes: events reach the shared log when the request commits."""
    return SessionAuditLog(request.app.state.audit_log, db)
