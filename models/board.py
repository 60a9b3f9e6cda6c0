"""
Board Model
A board is owned by exactly one user and holds the tasks laid out in its status columns.
"""

from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Text, func
from .base import Base

if TYPE_CHECKING:
    from .task import Task


class Board(Base):
    """
    Kanban board. Ownership is a plain user id handed over by the identity provider;
    there is no users table on this side.
    """
    __tablename__ = "boards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    tasks: Mapped[list["Task"]] = relationship(
        back_populates="board",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    last_accessed: Mapped[Optional[datetime]] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self):
        return f'<Board {self.id}: {self.name}>'

    def touch(self):
        """Record a read access."""
        self.last_accessed = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'last_accessed': self.last_accessed.isoformat() if self.last_accessed else None,
        }
