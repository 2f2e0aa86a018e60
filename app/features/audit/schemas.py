"""
Pydantic schemas for audit events, statistics and system reports.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ============================================================================
# Audit Events
# ============================================================================

class AuditEvent(BaseModel):
    """One recorded mutation or system event."""
    timestamp: datetime
    action: str
    resource: str
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    
    model_config = ConfigDict(frozen=True)


class AuditLogFilters(BaseModel):
    """Filters accepted by AuditLog.query."""
    user_id: Optional[str] = None
    action: Optional[str] = Field(None, description="Substring matched against the event action")
    resource: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1)
    
    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive datetimes are taken to be UTC, like recorded events."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AuditLogListResponse(BaseModel):
    items: List[AuditEvent]
    total: int


# ============================================================================
# Permission Statistics
# ============================================================================

class UserPermissionAudit(BaseModel):
    """Effective permissions of one user."""
    user_id: str
    username: str
    email: str
    is_active: bool
    effective_permissions: List[str] = []
    permission_count: int = 0


class PermissionUsage(BaseModel):
    permission_id: str
    permission: str
    user_count: int


class PermissionCountBucket(BaseModel):
    permission_count: int
    user_count: int


class PermissionStatistics(BaseModel):
    total_users: int
    users_with_permissions: int
    users_without_permissions: int
    average_permissions_per_user: float
    most_common_permissions: List[PermissionUsage] = []
    permission_distribution: List[PermissionCountBucket] = []


# ============================================================================
# Orphans and Health
# ============================================================================

class OrphanReport(BaseModel):
    orphaned_user_groups: int = 0
    orphaned_group_roles: int = 0
    orphaned_role_permissions: int = 0
    inactive_users_with_groups: int = 0
    
    @computed_field
    @property
    def total(self) -> int:
        return (
            self.orphaned_user_groups
            + self.orphaned_group_roles
            + self.orphaned_role_permissions
            + self.inactive_users_with_groups
        )


class EntityCounts(BaseModel):
    users: int = 0
    groups: int = 0
    roles: int = 0
    permissions: int = 0
    modules: int = 0


class RelationCounts(BaseModel):
    user_groups: int = 0
    group_roles: int = 0
    role_permissions: int = 0


class SystemHealth(BaseModel):
    database_status: str = "healthy"
    connection_latency: Optional[float] = Field(None, description="Store round trip in milliseconds")
    error: Optional[str] = None
    entity_counts: EntityCounts = EntityCounts()
    relation_counts: RelationCounts = RelationCounts()
    timestamp: datetime


class SystemReport(BaseModel):
    health: SystemHealth
    permission_stats: PermissionStatistics
    orphaned_records: OrphanReport
    recent_activity: List[AuditEvent] = []
    generated_at: datetime
