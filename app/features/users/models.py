"""
User model with ULID primary keys.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, EntityMixin


class User(Base, EntityMixin):
    """
    User model representing accounts that receive permissions through groups.
    
    Uses ULID instead of auto-incrementing integers for better distributed systems support.
    """
    __tablename__ = "users"
    
    # Login identity
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    
    # Hashed password, never serialized
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # Optional fields
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    
    @property
    def display_name(self) -> str:
        return self.username
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"
