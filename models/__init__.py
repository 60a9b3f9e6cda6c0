"""
Models package: SQLAlchemy 2.0 declarative models for boards and their tasks.
"""

from flask_sqlalchemy import SQLAlchemy

from .base import Base

db = SQLAlchemy(model_class=Base)

from .board import Board  # noqa: E402
from .task import Task, TaskStatus, TaskPriority  # noqa: E402

__all__ = [
    "db",
    "Base",
    "Board",
    "Task",
    "TaskStatus",
    "TaskPriority",
]
