"""
Permission management.

(name, action, module_id) is unique; the check runs here before every
insert or update since the table carries no such constraint.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import selectinload

from app.core.errors import ConflictError, NotFoundError
from app.core.service import EntityService, changed_fields, search_condition
from app.features.modules.models import Module
from app.features.permissions.models import Permission
from app.features.permissions.resolver import validate_action
from app.features.permissions.schemas import PermissionCreate, PermissionUpdate
from app.features.relationships.models import role_permissions
from app.utils import get_logger


log = get_logger(__name__)

_WITH_MODULE = [selectinload(Permission.module)]


class PermissionService(EntityService):
    resource = "permission"

    async def list(
        self,
        search: Optional[str] = None,
        module_id: Optional[str] = None,
        action: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Permission], int]:
        conditions = search_condition(search, Permission.name, Permission.description)
        filters = {}
        if module_id:
            filters["module_id"] = module_id
        if action:
            filters["action"] = validate_action(action)
        if is_active is not None:
            filters["is_active"] = is_active

        permissions = await self.store.find_all(
            Permission, *conditions, limit=limit, offset=offset, options=_WITH_MODULE, **filters
        )
        total = await self.store.count(Permission, *conditions, **filters)
        return permissions, total

    async def get(self, permission_id: str) -> Permission:
        return await self._get_or_404(Permission, permission_id, options=_WITH_MODULE)

    async def _check_module(self, module_id: str) -> None:
        if await self.store.find_by_id(Module, module_id) is None:
            raise NotFoundError(f"Module with ID {module_id} not found", errors={"module_id": module_id})

    async def _check_unique(self, name: str, action: str, module_id: str, exclude_id: Optional[str] = None):
        conditions = [Permission.id != exclude_id] if exclude_id else []
        duplicate = await self.store.find_one(
            Permission, *conditions, name=name, action=action, module_id=module_id
        )
        if duplicate is not None:
            raise ConflictError(
                "Permission with this name and action already exists for this module",
                errors={"name": name, "action": action, "module_id": module_id},
            )

    async def create(self, data: PermissionCreate) -> Permission:
        action = validate_action(data.action)
        await self._check_unique(data.name, action, data.module_id)
        await self._check_module(data.module_id)

        permission = await self.store.create(Permission, **{**data.model_dump(), "action": action})
        log.info("Created permission %s (%s %s)", permission.id, permission.name, action)
        self._record("PERMISSION_CREATED", permission.id, {
            "name": permission.name,
            "action": action,
            "module_id": permission.module_id,
        })
        return await self.get(permission.id)

    async def update(self, permission_id: str, data: PermissionUpdate) -> Permission:
        permission = await self.get(permission_id)
        changes = changed_fields(data, nullable=("description",))
        if changes.get("action") is not None:
            changes["action"] = validate_action(changes["action"])

        if {"name", "action", "module_id"} & changes.keys():
            await self._check_unique(
                changes.get("name") or permission.name,
                changes.get("action") or permission.action,
                changes.get("module_id") or permission.module_id,
                exclude_id=permission.id,
            )
        if changes.get("module_id"):
            await self._check_module(changes["module_id"])

        await self.store.update(permission, **changes)
        log.info("Updated permission %s", permission_id)
        self._record("PERMISSION_UPDATED", permission_id, {"fields": sorted(changes)})
        return await self.get(permission_id)

    async def delete(self, permission_id: str) -> None:
        """Delete a permission and every role grant of it."""
        permission = await self.get(permission_id)
        removed = await self.store.unlink(role_permissions, permission_id=permission_id)
        await self.store.destroy(permission)
        log.info("Deleted permission %s and %d role grants", permission_id, removed)
        self._record("PERMISSION_DELETED", permission_id, {"name": permission.name, "roles_removed": removed})
