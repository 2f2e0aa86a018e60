"""
Module model. A module is the resource a permission applies to.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, EntityMixin


class Module(Base, EntityMixin):
    """
    Application area that permissions are scoped to.
    
    Examples: "User Management", "Billing", "Reports"
    """
    __tablename__ = "modules"
    
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    def __repr__(self) -> str:
        return f"<Module(id={self.id}, name={self.name!r})>"
