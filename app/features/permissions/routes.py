"""
Permission management API routes.

Provides endpoints for managing permissions and for resolving and checking
the effective permissions of users.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, status

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.permissions.dependencies import require_permission
from app.features.permissions.resolver import PermissionResolver
from app.features.permissions.schemas import (
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionCreate,
    PermissionListResponse,
    PermissionResponse,
    PermissionSummary,
    PermissionUpdate,
    SimulateActionRequest,
    SimulationResult,
    UserPermissionSummary,
)
from app.features.permissions.service import PermissionService
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()
user_permission_router = APIRouter()


# ============================================================================
# Permission Routes
# ============================================================================

@router.get("", response_model=PermissionListResponse)
async def list_permissions(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))],
    search: Optional[str] = None,
    module_id: Optional[str] = None,
    action: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 100
):
    """List permissions with optional filtering."""
    permissions, total = await PermissionService(store).list(
        search, module_id, action, is_active, limit=limit, offset=skip
    )
    return PermissionListResponse(
        items=[PermissionResponse.model_validate(p) for p in permissions],
        total=total,
    )


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Permissions", "create"))]
):
    return await PermissionService(store, audit_log, actor_id=user.id).create(permission)


@router.get("/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    return await PermissionService(store).get(permission_id)


@router.put("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: str,
    permission_update: PermissionUpdate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Permissions", "update"))]
):
    return await PermissionService(store, audit_log, actor_id=user.id).update(permission_id, permission_update)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Permissions", "delete"))]
):
    """Delete a permission and remove it from every role."""
    await PermissionService(store, audit_log, actor_id=user.id).delete(permission_id)


# ============================================================================
# Effective Permissions
# ============================================================================

@user_permission_router.get("/me", response_model=List[PermissionSummary])
async def get_my_permissions(
    store: Annotated[EntityStore, Depends(get_store)],
    user: Annotated[User, Depends(get_current_user)]
):
    """Effective permissions of the authenticated user."""
    return await PermissionResolver(store).formatted(user.id)


@user_permission_router.get("/{user_id}", response_model=List[PermissionSummary])
async def get_user_permissions(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    """Effective permissions of a user, sorted by module then action."""
    return await PermissionResolver(store).formatted(user_id)


@user_permission_router.get("/{user_id}/summary", response_model=UserPermissionSummary)
async def get_user_permission_summary(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    """Effective permissions of a user broken down by group and role."""
    return await PermissionResolver(store).summarize(user_id)


@user_permission_router.post("/{user_id}/check", response_model=PermissionCheckResponse)
async def check_permission(
    user_id: str,
    check: PermissionCheckRequest,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    """Check if a user holds an action on a module."""
    allowed = await PermissionResolver(store).check(user_id, check.module, check.action, by_name=check.by_name)
    return PermissionCheckResponse(
        user_id=user_id,
        module=check.module,
        action=check.action,
        has_permission=allowed,
    )


@user_permission_router.post("/{user_id}/simulate", response_model=SimulationResult)
async def simulate_action(
    user_id: str,
    request: SimulateActionRequest,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    """Simulate whether a user could perform an action on a module."""
    return await PermissionResolver(store).simulate(user_id, request.module_id, request.action)
