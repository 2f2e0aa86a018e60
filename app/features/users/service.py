"""
User management.
"""
from typing import Any, Dict, List, Optional, Tuple

from app.core.errors import ConflictError
from app.core.service import EntityService, changed_fields, search_condition
from app.features.groups.models import Group
from app.features.relationships.models import user_groups
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.features.users.schemas import UserCreate, UserUpdate
from app.utils import get_logger


log = get_logger(__name__)


class UserService(EntityService):
    resource = "user"

    async def list(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        group_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[User], int]:
        conditions = search_condition(search, User.username, User.email, User.first_name, User.last_name)
        if group_id:
            member_ids = [link["user_id"] for link in await self.store.find_links(user_groups, group_id=group_id)]
            conditions.append(User.id.in_(member_ids))
        filters = {} if is_active is None else {"is_active": is_active}

        users = await self.store.find_all(User, *conditions, limit=limit, offset=offset, **filters)
        total = await self.store.count(User, *conditions, **filters)
        return users, total

    async def get(self, user_id: str) -> User:
        return await self._get_or_404(User, user_id)

    async def _check_unique(self, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None):
        conditions = [User.id != exclude_id] if exclude_id else []
        if email and await self.store.find_one(User, *conditions, email=email):
            raise ConflictError("Email already exists", errors={"email": email})
        if username and await self.store.find_one(User, *conditions, username=username):
            raise ConflictError("Username already exists", errors={"username": username})

    async def create(self, data: UserCreate) -> User:
        await self._check_unique(data.username, data.email)

        attributes = data.model_dump(exclude={"password"})
        user = await self.store.create(User, password_hash=hash_password(data.password), **attributes)

        log.info("Created user %s (%s)", user.id, user.username)
        self._record("USER_CREATED", user.id, {"username": user.username, "email": user.email})
        return user

    async def update(self, user_id: str, data: UserUpdate) -> User:
        user = await self.get(user_id)
        changes: Dict[str, Any] = changed_fields(data, nullable=("first_name", "last_name"))

        await self._check_unique(
            changes.get("username") if changes.get("username") != user.username else None,
            changes.get("email") if changes.get("email") != user.email else None,
            exclude_id=user.id,
        )

        fields = sorted(changes)
        password = changes.pop("password", None)
        if password:
            changes["password_hash"] = hash_password(password)

        user = await self.store.update(user, **changes)
        log.info("Updated user %s", user.id)
        self._record("USER_UPDATED", user.id, {"fields": fields})
        return user

    async def delete(self, user_id: str) -> None:
        """Deactivate a user. Group memberships are kept."""
        user = await self.get(user_id)
        await self.store.update(user, is_active=False)
        log.info("Deactivated user %s", user_id)
        self._record("USER_DELETED", user_id)

    async def hard_delete(self, user_id: str) -> None:
        user = await self.get(user_id)
        removed = await self.store.unlink(user_groups, user_id=user_id)
        await self.store.destroy(user)
        log.info("Deleted user %s and %d group memberships", user_id, removed)
        self._record("USER_HARD_DELETED", user_id, {"memberships_removed": removed})

    async def get_groups(self, user_id: str) -> List[Group]:
        await self.get(user_id)
        return await self.store.find_related(Group, user_groups, key="group_id", via="user_id", ids=[user_id])
