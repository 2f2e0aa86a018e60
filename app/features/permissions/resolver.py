"""
Effective permission resolution.

A user's permissions are the permissions of every role granted to every
group the user belongs to, deduplicated by permission id. The graph is walked
in three explicit steps: user -> groups, groups -> roles, roles -> permissions.

Inactive groups, roles and permissions along the path still count; only hard
deletes cut an edge.
"""
from typing import Dict, List

from app.core.database.store import EntityStore
from app.core.errors import BadRequestError, NotFoundError
from app.features.groups.models import Group
from app.features.modules.models import Module
from app.features.permissions.models import ACTIONS, Permission
from app.features.permissions.schemas import (
    GroupGrant,
    PermissionSummary,
    RoleGrant,
    SimulationResult,
    UserPermissionSummary,
)
from app.features.relationships.models import group_roles, role_permissions, user_groups
from app.features.roles.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


def validate_action(action: str) -> str:
    """Return the canonical action value or raise BadRequestError."""
    value = getattr(action, "value", action)
    if value not in ACTIONS:
        raise BadRequestError(
            f"Action must be one of: {', '.join(ACTIONS)}",
            errors={"action": value},
        )
    return value


def dedupe_permissions(permissions: List[Permission]) -> List[Permission]:
    """Drop repeated permissions by id, keeping the first occurrence."""
    unique: Dict[str, Permission] = {}
    for permission in permissions:
        unique.setdefault(permission.id, permission)
    return list(unique.values())


class PermissionResolver:
    """Computes and checks the effective permissions of users."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def _get_user(self, user_id: str) -> User:
        user = await self.store.find_by_id(User, user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found", errors={"user_id": user_id})
        return user

    async def resolve(self, user_id: str) -> List[Permission]:
        """
        Get all permissions for a user.

        Raises:
            NotFoundError: if the user does not exist

        Returns:
            Unique Permission objects (with their module loaded), unordered
        """
        await self._get_user(user_id)

        groups = await self.store.find_related(
            Group, user_groups, key="group_id", via="user_id", ids=[user_id]
        )
        if not groups:
            log.debug("User %s belongs to no groups", user_id)
            return []

        # A role shared by several groups shows up once per edge here
        roles = await self.store.find_related(
            Role, group_roles, key="role_id", via="group_id", ids=[group.id for group in groups]
        )
        if not roles:
            log.debug("Groups of user %s carry no roles", user_id)
            return []

        permissions = await self.store.find_related(
            Permission, role_permissions, key="permission_id", via="role_id", ids=[role.id for role in roles]
        )
        if not permissions:
            log.debug("Roles of user %s carry no permissions", user_id)
            return []

        unique = dedupe_permissions(permissions)
        log.debug(
            "Resolved %d permissions (%d before dedup) for user %s",
            len(unique), len(permissions), user_id
        )
        return unique

    async def check(self, user_id: str, module: str, action: str, by_name: bool = True) -> bool:
        """
        Check if a user holds `action` on a module.

        Args:
            user_id: User ID
            module: Module name, or module ID when `by_name` is False
            action: One of create, read, update, delete
            by_name: Resolve `module` by name (NotFound if unknown)
        """
        if by_name:
            found = await self.store.find_one(Module, name=module)
            if found is None:
                raise NotFoundError(f"Module '{module}' not found", errors={"module": module})
            module_id = found.id
        else:
            module_id = module

        action = validate_action(action)
        permissions = await self.resolve(user_id)
        return any(
            permission.module_id == module_id and permission.action == action
            for permission in permissions
        )

    async def simulate(self, user_id: str, module_id: str, action: str) -> SimulationResult:
        """Check if a user could perform an action, validating every input explicitly."""
        await self._get_user(user_id)

        module = await self.store.find_by_id(Module, module_id)
        if module is None:
            raise NotFoundError(f"Module with ID {module_id} not found", errors={"module_id": module_id})

        action = validate_action(action)
        permissions = await self.resolve(user_id)
        has_permission = any(
            permission.module_id == module.id and permission.action == action
            for permission in permissions
        )

        return SimulationResult(
            user_id=user_id,
            module_id=module.id,
            module_name=module.name,
            action=action,
            has_permission=has_permission,
        )

    async def formatted(self, user_id: str) -> List[PermissionSummary]:
        """Effective permissions flattened with their module name, sorted by module then action."""
        permissions = await self.resolve(user_id)
        summaries = [PermissionSummary.model_validate(permission) for permission in permissions]
        return sorted(summaries, key=lambda p: (p.module_name, ACTIONS.index(p.action), p.name))

    async def summarize(self, user_id: str) -> UserPermissionSummary:
        """
        Break a user's effective permissions down by group and role.

        Uses batched lookups over the join tables instead of one query per
        group and role.
        """
        user = await self._get_user(user_id)
        summary = UserPermissionSummary(user_id=user.id, username=user.username)

        groups = await self.store.find_related(
            Group, user_groups, key="group_id", via="user_id", ids=[user_id]
        )
        if not groups:
            return summary

        group_links = await self.store.find_links(group_roles, group_id=[group.id for group in groups])
        role_ids = list(dict.fromkeys(link["role_id"] for link in group_links))
        roles = {role.id: role for role in await self.store.find_all(Role, id=role_ids)} if role_ids else {}

        permission_links = await self.store.find_links(role_permissions, role_id=list(roles)) if roles else []
        permission_ids = list(dict.fromkeys(link["permission_id"] for link in permission_links))
        permissions = (
            {p.id: p for p in await self.store.find_all(Permission, id=permission_ids)}
            if permission_ids else {}
        )

        permissions_by_role: Dict[str, List[PermissionSummary]] = {}
        for link in permission_links:
            permission = permissions.get(link["permission_id"])
            if permission is not None:
                permissions_by_role.setdefault(link["role_id"], []).append(
                    PermissionSummary.model_validate(permission)
                )

        roles_by_group: Dict[str, List[RoleGrant]] = {}
        for link in group_links:
            role = roles.get(link["role_id"])
            if role is not None:
                roles_by_group.setdefault(link["group_id"], []).append(
                    RoleGrant(id=role.id, name=role.name, permissions=permissions_by_role.get(role.id, []))
                )

        effective: Dict[str, PermissionSummary] = {}
        for group in groups:
            grant = GroupGrant(id=group.id, name=group.name, roles=roles_by_group.get(group.id, []))
            summary.groups.append(grant)
            for role in grant.roles:
                for permission in role.permissions:
                    effective.setdefault(permission.id, permission)

        summary.effective_permissions = list(effective.values())
        summary.permission_count = len(effective)
        return summary
