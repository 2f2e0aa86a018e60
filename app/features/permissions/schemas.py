"""
Pydantic schemas for permission management.

Request and response models for permissions, permission checks and user
permission summaries.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.models import PermissionAction


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=2, max_length=100, description="Permission name")
    action: PermissionAction = Field(..., description="One of: create, read, update, delete")
    module_id: str = Field(..., description="Module the permission applies to")
    description: Optional[str] = Field(None, max_length=1000, description="Permission description")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""
    is_active: bool = True

    @field_validator('action', mode='before')
    @classmethod
    def action_lowercase(cls, v):
        """Ensure action is lowercase."""
        return v.lower() if isinstance(v, str) else v


class PermissionUpdate(BaseModel):
    """Schema for updating a permission."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    action: Optional[PermissionAction] = None
    module_id: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    name: str
    action: str
    module_id: str
    module_name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermissionListResponse(BaseModel):
    items: List[PermissionResponse]
    total: int


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking if a user holds a permission on a module."""
    module: str = Field(..., description="Module name, or module ID when by_name is false")
    action: str = Field(..., description="Action")
    by_name: bool = True


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    user_id: str
    module: str
    action: str
    has_permission: bool


class SimulateActionRequest(BaseModel):
    module_id: str
    action: str


class SimulationResult(BaseModel):
    user_id: str
    module_id: str
    module_name: str
    action: str
    has_permission: bool


# ============================================================================
# User Permission Summaries
# ============================================================================

class PermissionSummary(BaseModel):
    id: str
    name: str
    action: str
    module_id: str
    module_name: str
    description: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class RoleGrant(BaseModel):
    """A role reached through a group, with the permissions it carries."""
    id: str
    name: str
    permissions: List[PermissionSummary] = []


class GroupGrant(BaseModel):
    id: str
    name: str
    roles: List[RoleGrant] = []


class UserPermissionSummary(BaseModel):
    """Effective permissions of a user broken down by group and role."""
    user_id: str
    username: str
    groups: List[GroupGrant] = []
    effective_permissions: List[PermissionSummary] = []
    permission_count: int = 0
