"""
Pydantic schemas for roles.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=2, max_length=50, description="Role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    is_active: bool = True


class RoleUpdate(BaseModel):
    """Schema for updating a role."""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class RoleClone(BaseModel):
    """Schema for cloning a role together with its permissions."""
    name: str = Field(..., min_length=2, max_length=50, description="Name of the new role")
    description: Optional[str] = Field(None, max_length=1000)


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleListResponse(BaseModel):
    items: List[RoleResponse]
    total: int


class RoleStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    with_permissions: int
    without_permissions: int
    with_groups: int
    without_groups: int
    average_permissions_per_role: float
    average_groups_per_role: float
