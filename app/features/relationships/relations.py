"""
The three join relations of the RBAC graph.

Each Relation names its table, the "left" entity that owns an assignment
set and the "right" entities being assigned, plus whether only active
right entities may be assigned.
"""
from dataclasses import dataclass
from typing import Any, Type

from sqlalchemy import Table

from app.features.groups.models import Group
from app.features.permissions.models import Permission
from app.features.relationships.models import group_roles, role_permissions, user_groups
from app.features.roles.models import Role
from app.features.users.models import User


@dataclass(frozen=True)
class Relation:
    name: str
    table: Table
    left_model: Type[Any]
    left_key: str
    left_label: str
    right_model: Type[Any]
    right_key: str
    right_label: str
    right_plural: str
    require_active: bool = False

    @property
    def assign_action(self) -> str:
        return f"ASSIGN_{self.right_plural.upper()}_TO_{self.left_label.upper()}"

    @property
    def remove_action(self) -> str:
        return f"REMOVE_{self.right_plural.upper()}_FROM_{self.left_label.upper()}"

    @property
    def replace_action(self) -> str:
        return f"REPLACE_{self.left_label.upper()}_{self.right_plural.upper()}"


USER_GROUP = Relation(
    name="user_group",
    table=user_groups,
    left_model=Group,
    left_key="group_id",
    left_label="group",
    right_model=User,
    right_key="user_id",
    right_label="user",
    right_plural="users",
    require_active=True,
)

GROUP_ROLE = Relation(
    name="group_role",
    table=group_roles,
    left_model=Group,
    left_key="group_id",
    left_label="group",
    right_model=Role,
    right_key="role_id",
    right_label="role",
    right_plural="roles",
    require_active=True,
)

ROLE_PERMISSION = Relation(
    name="role_permission",
    table=role_permissions,
    left_model=Role,
    left_key="role_id",
    left_label="role",
    right_model=Permission,
    right_key="permission_id",
    right_label="permission",
    right_plural="permissions",
)
