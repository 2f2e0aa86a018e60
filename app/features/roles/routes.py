"""
Role routes. Permission assignment lives in the relationships feature.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, status

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.permissions.dependencies import require_permission
from app.features.roles.schemas import (
    RoleClone,
    RoleCreate,
    RoleListResponse,
    RoleResponse,
    RoleStatistics,
    RoleUpdate,
)
from app.features.roles.service import RoleService
from app.features.users.models import User


router = APIRouter(tags=["roles"])


@router.get("", response_model=RoleListResponse)
async def list_roles(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Roles", "read"))],
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 50
):
    roles, total = await RoleService(store).list(search, is_active, limit=limit, offset=skip)
    return RoleListResponse(items=[RoleResponse.model_validate(r) for r in roles], total=total)


@router.get("/statistics", response_model=RoleStatistics)
async def get_role_statistics(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Roles", "read"))]
):
    return await RoleService(store).statistics()


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Roles", "create"))]
):
    return await RoleService(store, audit_log, actor_id=user.id).create(data)


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Roles", "read"))]
):
    return await RoleService(store).get(role_id)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Roles", "update"))]
):
    return await RoleService(store, audit_log, actor_id=user.id).update(role_id, data)


@router.delete("/{role_id}")
async def deactivate_role(
    role_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Roles", "delete"))]
):
    """Deactivate a role. Fails with 422 while any group holds it."""
    await RoleService(store, audit_log, actor_id=user.id).delete(role_id)
    return {"message": "Role deactivated successfully"}


@router.delete("/{role_id}/hard")
async def delete_role(
    role_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Roles", "delete"))]
):
    """Permanently delete a role with its permission and group grants."""
    await RoleService(store, audit_log, actor_id=user.id).hard_delete(role_id)
    return {"message": "Role deleted permanently"}


@router.post("/{role_id}/clone", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def clone_role(
    role_id: str,
    data: RoleClone,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Roles", "create"))]
):
    """Create a copy of a role, including its permissions."""
    return await RoleService(store, audit_log, actor_id=user.id).clone(role_id, data.name, data.description)
