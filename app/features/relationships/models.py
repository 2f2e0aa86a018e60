"""
Association tables for the many-to-many relations of the RBAC graph.

User *-* Group *-* Role *-* Permission. The composite primary key of each
table allows at most one row per pair.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Table

from app.core.database.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


user_groups = Table(
    "user_groups",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", String(26), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
)

group_roles = Table(
    "group_roles",
    Base.metadata,
    Column("group_id", String(26), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
)
