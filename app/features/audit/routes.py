"""
Audit log, statistics and system health routes.
"""
from datetime import datetime
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_log, get_store
from app.features.audit.log import AuditLog
from app.features.audit.schemas import (
    AuditLogFilters,
    AuditLogListResponse,
    OrphanReport,
    PermissionStatistics,
    SystemHealth,
    SystemReport,
    UserPermissionAudit,
)
from app.features.audit.statistics import StatisticsEngine
from app.features.permissions.dependencies import require_permission
from app.features.users.models import User


router = APIRouter(tags=["audit"])

can_read_audit = require_permission("Audit", "read")


@router.get("/logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    _user: Annotated[User, Depends(can_read_audit)],
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: Annotated[Optional[int], Query(ge=1)] = 100
):
    """Recorded events, newest first. `action` matches as a substring."""
    filters = AuditLogFilters(
        user_id=user_id,
        action=action,
        resource=resource,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    events = audit_log.query(filters)
    return AuditLogListResponse(items=events, total=len(events))


@router.get("/health", response_model=SystemHealth)
async def get_system_health(
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    _user: Annotated[User, Depends(can_read_audit)]
):
    return await StatisticsEngine(store, audit_log).system_health()


@router.get("/permissions", response_model=List[UserPermissionAudit])
async def get_permission_audit(
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    user: Annotated[User, Depends(can_read_audit)]
):
    """Effective permissions of every user."""
    return await StatisticsEngine(store, audit_log, actor_id=user.id).permission_audit()


@router.get("/statistics", response_model=PermissionStatistics)
async def get_permission_statistics(
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    _user: Annotated[User, Depends(can_read_audit)]
):
    return await StatisticsEngine(store, audit_log).permission_statistics()


@router.get("/orphans", response_model=OrphanReport)
async def get_orphaned_records(
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    _user: Annotated[User, Depends(can_read_audit)]
):
    return await StatisticsEngine(store, audit_log).orphan_report()


@router.get("/report", response_model=SystemReport)
async def get_system_report(
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[AuditLog, Depends(get_audit_log)],
    user: Annotated[User, Depends(can_read_audit)]
):
    """Health, statistics, orphans and recent activity in one report."""
    return await StatisticsEngine(store, audit_log, actor_id=user.id).system_report()
