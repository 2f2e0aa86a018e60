"""
Role model. Roles bundle permissions and are granted to groups.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, EntityMixin


class Role(Base, EntityMixin):
    """
    Role model for grouping permissions.
    
    Examples: admin, billing_manager, claims_viewer, auditor
    """
    __tablename__ = "roles"
    
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    @property
    def display_name(self) -> str:
        return self.name
    
    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"
