"""
Aggregate statistics over the RBAC graph.

Permission statistics are computed from every user's effective
permissions; orphan detection and health counts are plain aggregate
queries against the store.
"""
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from app.core import config
from app.core.database.store import EntityStore
from app.features.audit.log import AuditLog
from app.features.audit.schemas import (
    EntityCounts,
    OrphanReport,
    PermissionCountBucket,
    PermissionStatistics,
    PermissionUsage,
    RelationCounts,
    SystemHealth,
    SystemReport,
    UserPermissionAudit,
)
from app.features.groups.models import Group
from app.features.modules.models import Module
from app.features.permissions.models import Permission
from app.features.permissions.resolver import PermissionResolver
from app.features.relationships.models import group_roles, role_permissions, user_groups
from app.features.roles.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class StatisticsEngine:
    """Permission statistics, orphan detection, health and reports."""

    def __init__(
        self,
        store: EntityStore,
        audit_log: AuditLog,
        resolver: Optional[PermissionResolver] = None,
        actor_id: Optional[str] = None,
    ):
        self.store = store
        self.audit_log = audit_log
        self.resolver = resolver or PermissionResolver(store)
        self.actor_id = actor_id

    async def _audit_users(self) -> List[Tuple[UserPermissionAudit, List[Permission]]]:
        """Every user (ordered by id) with their effective permissions sorted by name."""
        rows = []
        for user in await self.store.find_all(User):
            permissions = sorted(await self.resolver.resolve(user.id), key=lambda p: p.name)
            audit = UserPermissionAudit(
                user_id=user.id,
                username=user.username,
                email=user.email,
                is_active=user.is_active,
                effective_permissions=[permission.name for permission in permissions],
                permission_count=len(permissions),
            )
            rows.append((audit, permissions))
        return rows

    async def permission_audit(self) -> List[UserPermissionAudit]:
        """Effective permissions of every user."""
        rows = [audit for audit, _ in await self._audit_users()]
        self.audit_log.append(
            "PERMISSION_AUDIT_COMPLETED",
            "system",
            user_id=self.actor_id,
            details={"users_audited": len(rows)},
        )
        return rows

    async def permission_statistics(self) -> PermissionStatistics:
        """
        Summarize how permissions are spread across users.

        most_common_permissions counts distinct users per permission, highest
        first; ties keep the order in which permissions were first seen.
        permission_distribution is ordered by ascending permission count.
        """
        rows = await self._audit_users()
        total_users = len(rows)
        users_with_permissions = sum(1 for audit, _ in rows if audit.permission_count > 0)
        total_grants = sum(audit.permission_count for audit, _ in rows)

        usage: Counter = Counter()
        names: Dict[str, str] = {}
        for _, permissions in rows:
            for permission in permissions:
                usage[permission.id] += 1
                names.setdefault(permission.id, permission.name)

        # Counter.most_common is stable for equal counts (insertion order)
        most_common = [
            PermissionUsage(permission_id=permission_id, permission=names[permission_id], user_count=count)
            for permission_id, count in usage.most_common(config.MOST_COMMON_PERMISSIONS_LIMIT)
        ]

        distribution = Counter(audit.permission_count for audit, _ in rows)
        buckets = [
            PermissionCountBucket(permission_count=count, user_count=users)
            for count, users in sorted(distribution.items())
        ]

        return PermissionStatistics(
            total_users=total_users,
            users_with_permissions=users_with_permissions,
            users_without_permissions=total_users - users_with_permissions,
            average_permissions_per_user=round(total_grants / total_users, 2) if total_users else 0,
            most_common_permissions=most_common,
            permission_distribution=buckets,
        )

    async def orphan_report(self) -> OrphanReport:
        """Join rows pointing at missing entities, and deactivated users still in groups."""
        return OrphanReport(
            orphaned_user_groups=await self.store.count_orphaned_links(
                user_groups, (User, "user_id"), (Group, "group_id")
            ),
            orphaned_group_roles=await self.store.count_orphaned_links(
                group_roles, (Group, "group_id"), (Role, "role_id")
            ),
            orphaned_role_permissions=await self.store.count_orphaned_links(
                role_permissions, (Role, "role_id"), (Permission, "permission_id")
            ),
            inactive_users_with_groups=await self.store.count_inactive_linked(User, user_groups, "user_id"),
        )

    async def system_health(self) -> SystemHealth:
        """
        Ping the store and count entities and relations.

        Never raises: a failing store is reported with database_status
        "error" and zeroed counts.
        """
        try:
            started = time.perf_counter()
            await self.store.ping()
            latency = (time.perf_counter() - started) * 1000

            counts = await self.store.counts({
                "users": User,
                "groups": Group,
                "roles": Role,
                "permissions": Permission,
                "modules": Module,
                "user_groups": user_groups,
                "group_roles": group_roles,
                "role_permissions": role_permissions,
            })
        except Exception as e:
            log.exception("Health check failed")
            return SystemHealth(
                database_status="error",
                error=str(e) or "Unknown error",
                timestamp=datetime.now(timezone.utc),
            )

        return SystemHealth(
            database_status="healthy",
            connection_latency=round(latency, 3),
            entity_counts=EntityCounts(**{key: counts[key] for key in EntityCounts.model_fields}),
            relation_counts=RelationCounts(**{key: counts[key] for key in RelationCounts.model_fields}),
            timestamp=datetime.now(timezone.utc),
        )

    async def system_report(self) -> SystemReport:
        health = await self.system_health()
        stats = await self.permission_statistics()
        orphans = await self.orphan_report()
        recent = self.audit_log.query(limit=config.AUDIT_RECENT_ACTIVITY_LIMIT)

        report = SystemReport(
            health=health,
            permission_stats=stats,
            orphaned_records=orphans,
            recent_activity=recent,
            generated_at=datetime.now(timezone.utc),
        )

        self.audit_log.append(
            "SYSTEM_REPORT_GENERATED",
            "system",
            user_id=self.actor_id,
            details={
                "healthStatus": health.database_status,
                "totalUsers": stats.total_users,
                "orphanedRecords": orphans.total,
            },
        )
        return report
