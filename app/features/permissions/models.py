"""
Permission model.

A permission grants one CRUD action on one module. The combination
(name, action, module_id) is kept unique by PermissionService, not by the
database.
"""
import enum

from sqlalchemy import String, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, EntityMixin
from app.features.modules.models import Module


class PermissionAction(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


ACTIONS = tuple(action.value for action in PermissionAction)


class Permission(Base, EntityMixin):
    """
    Permission model defining one action on a module.
    
    Examples:
    - name="Billing Read", module="Billing", action="read"
    - name="Reports Delete", module="Reports", action="delete"
    """
    __tablename__ = "permissions"
    
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    module_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("modules.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    
    # Owning module, loaded with every permission query
    module: Mapped[Module | None] = relationship(Module, lazy="selectin")
    
    @property
    def display_name(self) -> str:
        return self.name
    
    @property
    def module_name(self) -> str:
        return self.module.name if self.module is not None else "Unknown"
    
    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r}, module_id={self.module_id}, action={self.action})>"
