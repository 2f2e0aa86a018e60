"""
User feature routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, status

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.groups.schemas import GroupResponse
from app.features.permissions.dependencies import require_permission
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import UserCreate, UserListResponse, UserResponse, UserUpdate
from app.features.users.service import UserService


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Users", "read"))],
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    group_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 50
):
    """List users, optionally filtered by search text, status or group."""
    users, total = await UserService(store).list(search, is_active, group_id, limit=limit, offset=skip)
    return UserListResponse(items=[UserResponse.model_validate(u) for u in users], total=total)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Users", "create"))]
):
    return await UserService(store, audit_log, actor_id=user.id).create(data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Users", "read"))]
):
    return await UserService(store).get(user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Users", "update"))]
):
    """Update a user. Only the provided fields change; a new password is re-hashed."""
    return await UserService(store, audit_log, actor_id=user.id).update(user_id, data)


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Users", "delete"))]
):
    """Deactivate a user account."""
    await UserService(store, audit_log, actor_id=user.id).delete(user_id)
    return {"message": "User deactivated successfully"}


@router.delete("/{user_id}/hard")
async def delete_user(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
    user: Annotated[User, Depends(require_permission("Users", "delete"))]
):
    """Permanently delete a user and their group memberships."""
    await UserService(store, audit_log, actor_id=user.id).hard_delete(user_id)
    return {"message": "User deleted permanently"}


@router.get("/{user_id}/groups", response_model=list[GroupResponse])
async def get_user_groups(
    user_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Users", "read"))]
):
    return await UserService(store).get_groups(user_id)
