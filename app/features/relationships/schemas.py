"""
Pydantic schemas for relationship assignments.
"""
import enum
from typing import Any, List
from pydantic import BaseModel, Field


class AssignmentStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    ALREADY_EXISTS = "already_exists"
    REMOVED = "removed"
    NOT_FOUND = "not_found"


class AssignmentDetail(BaseModel):
    """Outcome for one requested ID."""
    id: str
    name: str
    status: AssignmentStatus
    message: str


class AssignmentResult(BaseModel):
    assigned: int = 0
    skipped: int = 0
    details: List[AssignmentDetail] = []


class RemovalResult(BaseModel):
    removed: int = 0
    not_found: int = 0
    details: List[AssignmentDetail] = []


class AssignmentRequest(BaseModel):
    """IDs to assign or remove. Validated by the relationship manager."""
    ids: Any = Field(..., description="List of entity IDs")


class ReplaceRequest(BaseModel):
    """IDs that become the complete assignment set (may be empty)."""
    ids: List[str] = Field(default_factory=list)


class MembershipResponse(BaseModel):
    left_id: str
    right_id: str
    assigned: bool
