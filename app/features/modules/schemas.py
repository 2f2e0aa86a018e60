"""
Pydantic schemas for modules.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.schemas import PermissionResponse


class ModuleBase(BaseModel):
    """Base module schema. Name rules are enforced by ModuleService."""
    name: str = Field(..., description="Module name")
    description: Optional[str] = Field(None, max_length=1000, description="Module description")


class ModuleCreate(ModuleBase):
    """Schema for creating a new module."""
    is_active: bool = True


class ModuleUpdate(BaseModel):
    """Schema for updating a module."""
    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class ModuleResponse(ModuleBase):
    """Schema for module response."""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModuleListResponse(BaseModel):
    items: List[ModuleResponse]
    total: int


class StandardPermissionsResponse(BaseModel):
    """Permissions created by create_standard_permissions (only the missing actions)."""
    module_id: str
    created: List[PermissionResponse] = []
