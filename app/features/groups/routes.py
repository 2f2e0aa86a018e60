"""
Group routes. Membership and role assignment live in the relationships feature.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, status

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.groups.schemas import (
    GroupCreate,
    GroupListResponse,
    GroupResponse,
    GroupStatistics,
    GroupUpdate,
    GroupUserCount,
)
from app.features.groups.service import GroupService
from app.features.permissions.dependencies import require_permission
from app.features.users.models import User


router = APIRouter(tags=["groups"])


@router.get("", response_model=GroupListResponse)
async def list_groups(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Groups", "read"))],
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 50
):
    groups, total = await GroupService(store).list(search, is_active, limit=limit, offset=skip)
    return GroupListResponse(items=[GroupResponse.model_validate(g) for g in groups], total=total)


@router.get("/statistics", response_model=GroupStatistics)
async def get_group_statistics(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Groups", "read"))]
):
    """Group counts with and without members or roles."""
    return await GroupService(store).statistics()


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    data: GroupCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Groups", "create"))]
):
    return await GroupService(store, audit_log, actor_id=user.id).create(data)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Groups", "read"))]
):
    return await GroupService(store).get(group_id)


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    data: GroupUpdate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Groups", "update"))]
):
    return await GroupService(store, audit_log, actor_id=user.id).update(group_id, data)


@router.delete("/{group_id}")
async def deactivate_group(
    group_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Groups", "delete"))]
):
    """Deactivate a group. Fails with 422 while users are still assigned."""
    await GroupService(store, audit_log, actor_id=user.id).delete(group_id)
    return {"message": "Group deactivated successfully"}


@router.delete("/{group_id}/hard")
async def delete_group(
    group_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Groups", "delete"))]
):
    """Permanently delete a group with its memberships and role grants."""
    await GroupService(store, audit_log, actor_id=user.id).hard_delete(group_id)
    return {"message": "Group deleted permanently"}


@router.get("/{group_id}/user-count", response_model=GroupUserCount)
async def get_group_user_count(
    group_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Groups", "read"))]
):
    return await GroupService(store).get_user_count(group_id)
