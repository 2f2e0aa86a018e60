"""
Module routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, status

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.modules.schemas import (
    ModuleCreate,
    ModuleListResponse,
    ModuleResponse,
    ModuleUpdate,
    StandardPermissionsResponse,
)
from app.features.modules.service import ModuleService
from app.features.permissions.dependencies import require_permission
from app.features.permissions.schemas import PermissionResponse
from app.features.users.models import User


router = APIRouter(tags=["modules"])


@router.get("", response_model=ModuleListResponse)
async def list_modules(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Modules", "read"))],
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 50
):
    modules, total = await ModuleService(store).list(search, is_active, limit=limit, offset=skip)
    return ModuleListResponse(items=[ModuleResponse.model_validate(m) for m in modules], total=total)


@router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def create_module(
    data: ModuleCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Modules", "create"))]
):
    """Create a module. Every broken naming rule is reported in `errors.name`."""
    return await ModuleService(store, audit_log, actor_id=user.id).create(data)


@router.get("/{module_id}", response_model=ModuleResponse)
async def get_module(
    module_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Modules", "read"))]
):
    return await ModuleService(store).get(module_id)


@router.put("/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: str,
    data: ModuleUpdate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Modules", "update"))]
):
    return await ModuleService(store, audit_log, actor_id=user.id).update(module_id, data)


@router.delete("/{module_id}")
async def deactivate_module(
    module_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Modules", "delete"))]
):
    await ModuleService(store, audit_log, actor_id=user.id).delete(module_id)
    return {"message": "Module deactivated successfully"}


@router.delete("/{module_id}/hard")
async def delete_module(
    module_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Modules", "delete"))]
):
    await ModuleService(store, audit_log, actor_id=user.id).hard_delete(module_id)
    return {"message": "Module deleted permanently"}


@router.post("/{module_id}/standard-permissions", response_model=StandardPermissionsResponse)
async def create_standard_permissions(
    module_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Permissions", "create"))]
):
    """Create whichever of the create/read/update/delete permissions the module lacks."""
    created = await ModuleService(store, audit_log, actor_id=user.id).create_standard_permissions(module_id)
    return StandardPermissionsResponse(
        module_id=module_id,
        created=[PermissionResponse.model_validate(p) for p in created],
    )
