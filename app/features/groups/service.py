"""
Group management.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select

from app.core.errors import ConflictError, ValidationError
from app.core.service import EntityService, changed_fields, search_condition
from app.features.groups.models import Group
from app.features.groups.schemas import GroupCreate, GroupStatistics, GroupUpdate, GroupUserCount
from app.features.relationships.models import group_roles, user_groups
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class GroupService(EntityService):
    resource = "group"

    async def list(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Group], int]:
        conditions = search_condition(search, Group.name, Group.description)
        filters = {} if is_active is None else {"is_active": is_active}
        groups = await self.store.find_all(Group, *conditions, limit=limit, offset=offset, **filters)
        total = await self.store.count(Group, *conditions, **filters)
        return groups, total

    async def get(self, group_id: str) -> Group:
        return await self._get_or_404(Group, group_id)

    async def _check_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        conditions = [Group.id != exclude_id] if exclude_id else []
        if await self.store.find_one(Group, *conditions, name=name):
            raise ConflictError("Group name already exists", errors={"name": name})

    async def create(self, data: GroupCreate) -> Group:
        await self._check_name(data.name)
        group = await self.store.create(Group, **data.model_dump())
        log.info("Created group %s (%s)", group.id, group.name)
        self._record("GROUP_CREATED", group.id, {"name": group.name})
        return group

    async def update(self, group_id: str, data: GroupUpdate) -> Group:
        group = await self.get(group_id)
        changes = changed_fields(data, nullable=("description",))
        if changes.get("name") and changes["name"] != group.name:
            await self._check_name(changes["name"], exclude_id=group.id)

        group = await self.store.update(group, **changes)
        log.info("Updated group %s", group.id)
        self._record("GROUP_UPDATED", group.id, {"fields": sorted(changes)})
        return group

    async def delete(self, group_id: str) -> None:
        """Deactivate a group. Refused while users are still assigned."""
        group = await self.get(group_id)
        if await self.store.count_links(user_groups, group_id=group_id):
            raise ValidationError(
                "Cannot delete group with assigned users. Remove users first.",
                errors={"group_id": group_id},
            )
        await self.store.update(group, is_active=False)
        log.info("Deactivated group %s", group_id)
        self._record("GROUP_DELETED", group_id, {"name": group.name})

    async def hard_delete(self, group_id: str) -> None:
        group = await self.get(group_id)
        users_removed = await self.store.unlink(user_groups, group_id=group_id)
        roles_removed = await self.store.unlink(group_roles, group_id=group_id)
        await self.store.destroy(group)
        log.info(
            "Deleted group %s with %d memberships and %d role grants",
            group_id, users_removed, roles_removed
        )
        self._record("GROUP_HARD_DELETED", group_id, {
            "name": group.name,
            "users_removed": users_removed,
            "roles_removed": roles_removed,
        })

    async def get_users(self, group_id: str, active_only: bool = False) -> List[User]:
        await self.get(group_id)
        filters = {"is_active": True} if active_only else {}
        return await self.store.find_related(
            User, user_groups, key="user_id", via="group_id", ids=[group_id], **filters
        )

    async def get_user_count(self, group_id: str) -> GroupUserCount:
        users = await self.get_users(group_id)
        active = sum(1 for user in users if user.is_active)
        return GroupUserCount(group_id=group_id, total=len(users), active=active, inactive=len(users) - active)

    async def statistics(self) -> GroupStatistics:
        with_users = select(user_groups.c.group_id).distinct().subquery()
        with_roles = select(group_roles.c.group_id).distinct().subquery()
        counts = await self.store.counts({
            "total": Group,
            "active": select(Group.id).where(Group.is_active.is_(True)).subquery(),
            "with_users": with_users,
            "with_roles": with_roles,
            "user_links": user_groups,
            "role_links": group_roles,
        })

        total = counts["total"]
        return GroupStatistics(
            total=total,
            active=counts["active"],
            inactive=total - counts["active"],
            with_users=counts["with_users"],
            without_users=total - counts["with_users"],
            with_roles=counts["with_roles"],
            without_roles=total - counts["with_roles"],
            average_users_per_group=round(counts["user_links"] / total, 2) if total else 0,
            average_roles_per_group=round(counts["role_links"] / total, 2) if total else 0,
        )
