"""
Task Model for kanban board columns
SQLAlchemy 2.0-safe model; a task sits in exactly one (board, status) column at a dense position.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, func, Index
from .base import Base

if TYPE_CHECKING:
    from .board import Board


class TaskStatus(str, Enum):
    """Closed set of board columns."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value) -> "TaskStatus":
        """
        Resolve user input to a status.

        Accepts enum members, canonical values and the legacy spellings
        'in-progress' and 'done'. Raises ValueError for anything else.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid status: {value!r}")
        normalized = value.strip().lower()
        normalized = _STATUS_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Invalid status: {value!r}") from None


_STATUS_ALIASES = {
    "in-progress": "in_progress",
    "done": "completed",
}


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid priority: {value!r}") from None


class Task(Base):
    """
    Task card on a board.

    Positions are zero-based and contiguous within (board_id, status); the
    ordering service is the only writer of `status` and `position`.
    """
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Task content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(16), default=TaskPriority.MEDIUM.value, nullable=False)

    # Column placement
    status: Mapped[str] = mapped_column(String(32), default=TaskStatus.TODO.value, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # Display order within the column (0 = top)

    board_id: Mapped[int] = mapped_column(ForeignKey("boards.id", ondelete="CASCADE"), nullable=False)
    board: Mapped["Board"] = relationship(back_populates="tasks")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Not unique: range shifts pass through transient duplicates mid-transaction
    __table_args__ = (
        Index('ix_tasks_board_status_position', 'board_id', 'status', 'position'),
    )

    def __repr__(self):
        return f'<Task {self.id}: {self.title} ({self.status}#{self.position})>'

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    @property
    def is_in_progress(self) -> bool:
        return self.status == TaskStatus.IN_PROGRESS.value

    def to_dict(self):
        """Convert task to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'priority': self.priority,
            'status': self.status,
            'position': self.position,
            'board_id': self.board_id,
            'is_completed': self.is_completed,
            'is_in_progress': self.is_in_progress,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
