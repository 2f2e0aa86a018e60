"""
Group model. Users join groups; groups carry roles.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, EntityMixin


class Group(Base, EntityMixin):
    """
    Group model for organizing users with common roles.
    
    Groups simplify permission management by assigning roles to groups
    instead of individual users. Examples: billing_team, claims_processors, auditors
    """
    __tablename__ = "groups"
    
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    @property
    def display_name(self) -> str:
        return self.name
    
    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name!r})>"
