"""
Pydantic schemas for groups.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class GroupBase(BaseModel):
    """Base group schema."""
    name: str = Field(..., min_length=2, max_length=100, description="Group name")
    description: Optional[str] = Field(None, max_length=1000, description="Group description")


class GroupCreate(GroupBase):
    """Schema for creating a new group."""
    is_active: bool = True


class GroupUpdate(BaseModel):
    """Schema for updating a group."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class GroupResponse(GroupBase):
    """Schema for group response."""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupListResponse(BaseModel):
    items: List[GroupResponse]
    total: int


class GroupUserCount(BaseModel):
    group_id: str
    total: int
    active: int
    inactive: int


class GroupStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    with_users: int
    without_users: int
    with_roles: int
    without_roles: int
    average_users_per_group: float
    average_roles_per_group: float
