"""
Assignment routes for the three join relations.

The same five endpoints are mounted under the owning entity of each
relation:

    POST   /groups/{group_id}/users            assign
    DELETE /groups/{group_id}/users            remove
    PUT    /groups/{group_id}/users            replace the whole set
    GET    /groups/{group_id}/users            list
    GET    /groups/{group_id}/users/{user_id}  membership check

and likewise for /groups/{group_id}/roles and /roles/{role_id}/permissions.
"""
from typing import Annotated, Any, List

from fastapi import APIRouter, Body, Depends, Path

from app.core.database.store import EntityStore
from app.core.dependencies import get_audit_recorder, get_store
from app.features.audit.log import SessionAuditLog
from app.features.groups.schemas import GroupResponse
from app.features.permissions.dependencies import require_permission
from app.features.permissions.schemas import PermissionResponse
from app.features.relationships.manager import RelationshipManager
from app.features.relationships.relations import GROUP_ROLE, ROLE_PERMISSION, USER_GROUP, Relation
from app.features.relationships.schemas import (
    AssignmentRequest,
    AssignmentResult,
    MembershipResponse,
    RemovalResult,
    ReplaceRequest,
)
from app.features.roles.schemas import RoleResponse
from app.features.users.models import User
from app.features.users.schemas import UserPublic


def build_relation_router(relation: Relation, guard_module: str, response_model: Any) -> APIRouter:
    """
    Router exposing assign, remove, replace, list and check for one relation.

    Mutations require `update` on `guard_module`, reads require `read`.
    """
    router = APIRouter()
    collection = f"/{{left_id}}/{relation.right_plural}"
    can_read = require_permission(guard_module, "read")
    can_update = require_permission(guard_module, "update")

    @router.post(collection, response_model=AssignmentResult, name=relation.assign_action.lower())
    async def assign(
        left_id: Annotated[str, Path()],
        request: AssignmentRequest,
        store: Annotated[EntityStore, Depends(get_store)],
        audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
        user: Annotated[User, Depends(can_update)]
    ):
        manager = RelationshipManager(store, relation, audit_log=audit_log, actor_id=user.id)
        return await manager.assign(left_id, request.ids)

    @router.delete(collection, response_model=RemovalResult, name=relation.remove_action.lower())
    async def remove(
        left_id: Annotated[str, Path()],
        request: Annotated[AssignmentRequest, Body()],
        store: Annotated[EntityStore, Depends(get_store)],
        audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
        user: Annotated[User, Depends(can_update)]
    ):
        manager = RelationshipManager(store, relation, audit_log=audit_log, actor_id=user.id)
        return await manager.remove(left_id, request.ids)

    @router.put(collection, response_model=AssignmentResult, name=relation.replace_action.lower())
    async def replace(
        left_id: Annotated[str, Path()],
        request: ReplaceRequest,
        store: Annotated[EntityStore, Depends(get_store)],
        audit_log: Annotated[SessionAuditLog, Depends(get_audit_recorder)],
        user: Annotated[User, Depends(can_update)]
    ):
        manager = RelationshipManager(store, relation, audit_log=audit_log, actor_id=user.id)
        return await manager.replace(left_id, request.ids)

    @router.get(collection, response_model=List[response_model], name=f"list_{relation.name}s")
    async def list_assigned(
        left_id: Annotated[str, Path()],
        store: Annotated[EntityStore, Depends(get_store)],
        _user: Annotated[User, Depends(can_read)],
        active_only: bool = False
    ):
        return await RelationshipManager(store, relation).list_right(left_id, active_only=active_only)

    @router.get(collection + "/{right_id}", response_model=MembershipResponse, name=f"has_{relation.name}")
    async def has_assignment(
        left_id: Annotated[str, Path()],
        right_id: Annotated[str, Path()],
        store: Annotated[EntityStore, Depends(get_store)],
        _user: Annotated[User, Depends(can_read)]
    ):
        assigned = await RelationshipManager(store, relation).has(left_id, right_id)
        return MembershipResponse(left_id=left_id, right_id=right_id, assigned=assigned)

    return router


group_user_router = build_relation_router(USER_GROUP, "Groups", UserPublic)
group_role_router = build_relation_router(GROUP_ROLE, "Groups", RoleResponse)
role_permission_router = build_relation_router(ROLE_PERMISSION, "Roles", PermissionResponse)


# Reverse lookups: which groups hold a role, which roles hold a permission
reverse_router = APIRouter()


@reverse_router.get("/roles/{role_id}/groups", response_model=List[GroupResponse])
async def list_role_groups(
    role_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Roles", "read"))]
):
    return await RelationshipManager(store, GROUP_ROLE).list_left(role_id)


@reverse_router.get("/permissions/{permission_id}/roles", response_model=List[RoleResponse])
async def list_permission_roles(
    permission_id: str,
    store: Annotated[EntityStore, Depends(get_store)],
    _user: Annotated[User, Depends(require_permission("Permissions", "read"))]
):
    return await RelationshipManager(store, ROLE_PERMISSION).list_left(permission_id)
