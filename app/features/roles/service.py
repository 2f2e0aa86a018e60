"""
Role management, including cloning and role statistics.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select

from app.core.errors import ConflictError, ValidationError
from app.core.service import EntityService, changed_fields, search_condition
from app.features.permissions.models import Permission
from app.features.relationships.models import group_roles, role_permissions
from app.features.roles.models import Role
from app.features.roles.schemas import RoleCreate, RoleStatistics, RoleUpdate
from app.utils import get_logger


log = get_logger(__name__)


class RoleService(EntityService):
    resource = "role"

    async def list(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Role], int]:
        conditions = search_condition(search, Role.name, Role.description)
        filters = {} if is_active is None else {"is_active": is_active}
        roles = await self.store.find_all(Role, *conditions, limit=limit, offset=offset, **filters)
        total = await self.store.count(Role, *conditions, **filters)
        return roles, total

    async def get(self, role_id: str) -> Role:
        return await self._get_or_404(Role, role_id)

    async def _check_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        conditions = [Role.id != exclude_id] if exclude_id else []
        if await self.store.find_one(Role, *conditions, name=name):
            raise ConflictError("Role name already exists", errors={"name": name})

    async def create(self, data: RoleCreate) -> Role:
        await self._check_name(data.name)
        role = await self.store.create(Role, **data.model_dump())
        log.info("Created role %s (%s)", role.id, role.name)
        self._record("ROLE_CREATED", role.id, {"name": role.name})
        return role

    async def update(self, role_id: str, data: RoleUpdate) -> Role:
        role = await self.get(role_id)
        changes = changed_fields(data, nullable=("description",))
        if changes.get("name") and changes["name"] != role.name:
            await self._check_name(changes["name"], exclude_id=role.id)

        role = await self.store.update(role, **changes)
        log.info("Updated role %s", role.id)
        self._record("ROLE_UPDATED", role.id, {"fields": sorted(changes)})
        return role

    async def delete(self, role_id: str) -> None:
        """Deactivate a role. Refused while any group still holds it."""
        role = await self.get(role_id)
        if await self.store.count_links(group_roles, role_id=role_id):
            raise ValidationError(
                "Cannot delete role assigned to groups. Remove from groups first.",
                errors={"role_id": role_id},
            )
        await self.store.update(role, is_active=False)
        log.info("Deactivated role %s", role_id)
        self._record("ROLE_DELETED", role_id, {"name": role.name})

    async def hard_delete(self, role_id: str) -> None:
        role = await self.get(role_id)
        permissions_removed = await self.store.unlink(role_permissions, role_id=role_id)
        groups_removed = await self.store.unlink(group_roles, role_id=role_id)
        await self.store.destroy(role)
        log.info(
            "Deleted role %s with %d permission grants and %d group grants",
            role_id, permissions_removed, groups_removed
        )
        self._record("ROLE_HARD_DELETED", role_id, {
            "name": role.name,
            "permissions_removed": permissions_removed,
            "groups_removed": groups_removed,
        })

    async def clone(self, source_id: str, name: str, description: Optional[str] = None) -> Role:
        """Create a new role carrying the same permissions as `source_id`."""
        source = await self.get(source_id)
        await self._check_name(name)

        role = await self.store.create(
            Role,
            name=name,
            description=description or f"Clone of {source.name}",
            is_active=True,
        )
        links = await self.store.find_links(role_permissions, role_id=source.id)
        for link in links:
            await self.store.link(role_permissions, role_id=role.id, permission_id=link["permission_id"])

        log.info("Cloned role %s into %s with %d permissions", source.id, role.id, len(links))
        self._record("ROLE_CLONED", role.id, {"source_role_id": source.id, "permissions": len(links)})
        return role

    async def get_permissions(self, role_id: str) -> List[Permission]:
        await self.get(role_id)
        return await self.store.find_related(
            Permission, role_permissions, key="permission_id", via="role_id", ids=[role_id]
        )

    async def statistics(self) -> RoleStatistics:
        with_permissions = select(role_permissions.c.role_id).distinct().subquery()
        with_groups = select(group_roles.c.role_id).distinct().subquery()
        counts = await self.store.counts({
            "total": Role,
            "active": select(Role.id).where(Role.is_active.is_(True)).subquery(),
            "with_permissions": with_permissions,
            "with_groups": with_groups,
            "permission_links": role_permissions,
            "group_links": group_roles,
        })

        total = counts["total"]
        return RoleStatistics(
            total=total,
            active=counts["active"],
            inactive=total - counts["active"],
            with_permissions=counts["with_permissions"],
            without_permissions=total - counts["with_permissions"],
            with_groups=counts["with_groups"],
            without_groups=total - counts["with_groups"],
            average_permissions_per_role=round(counts["permission_links"] / total, 2) if total else 0,
            average_groups_per_role=round(counts["group_links"] / total, 2) if total else 0,
        )
