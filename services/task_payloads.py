"""
Closed input shapes for task mutations.

Patches and reorder entries are validated here, before anything reaches the
ordering engine.
"""

from dataclasses import dataclass, fields
from typing import Optional, Mapping, Any

from models import TaskStatus, TaskPriority
from services.ordering_errors import ValidationError

TITLE_MAX_LENGTH = 255


def parse_status(value) -> str:
    try:
        return TaskStatus.parse(value).value
    except ValueError as e:
        raise ValidationError(str(e), context={'status': value}) from None


def parse_priority(value) -> str:
    try:
        return TaskPriority.parse(value).value
    except ValueError as e:
        raise ValidationError(str(e), context={'priority': value}) from None


def parse_position(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Position must be an integer, got {value!r}", context={'position': value})
    if value < 0:
        raise ValidationError(f"Position must be non-negative, got {value}", context={'position': value})
    return value


def clean_title(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title is required")
    title = value.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def clean_description(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Description must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class TaskPatch:
    """Optional field updates for a task. Unset fields are None."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    position: Optional[int] = None
    clear_description: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskPatch":
        """
        Build a patch from a request body.

        Unknown keys are rejected. An explicit null description clears it.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Patch must be an object")

        allowed = {'title', 'description', 'priority', 'status', 'position'}
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(unknown)}", context={'fields': unknown})

        return cls(
            title=data.get('title'),
            description=data.get('description'),
            priority=data.get('priority'),
            status=data.get('status'),
            position=data.get('position'),
            clear_description='description' in data and data['description'] is None,
        ).validated()

    def validated(self) -> "TaskPatch":
        """Return a copy with every set field normalised, or raise ValidationError."""
        return TaskPatch(
            title=clean_title(self.title) if self.title is not None else None,
            description=clean_description(self.description),
            priority=parse_priority(self.priority) if self.priority is not None else None,
            status=parse_status(self.status) if self.status is not None else None,
            position=parse_position(self.position) if self.position is not None else None,
            clear_description=self.clear_description,
        )

    @property
    def is_empty(self) -> bool:
        return not self.clear_description and all(
            getattr(self, f.name) is None for f in fields(self) if f.name != 'clear_description'
        )


@dataclass(frozen=True)
class TaskPositionUpdate:
    """One entry of a drag-and-drop batch: the task's final column and slot."""
    task_id: int
    status: str
    position: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskPositionUpdate":
        if not isinstance(data, Mapping):
            raise ValidationError("Each update must be an object")
        task_id = data.get('task_id', data.get('id'))
        if isinstance(task_id, bool) or not isinstance(task_id, int):
            raise ValidationError("Each update needs an integer task_id", context={'update': dict(data)})
        if 'status' not in data or 'position' not in data:
            raise ValidationError(
                f"Update for task {task_id} needs both status and position",
                context={'task_id': task_id},
            )
        return cls(task_id=task_id, status=data['status'], position=data['position']).validated()

    def validated(self) -> "TaskPositionUpdate":
        return TaskPositionUpdate(
            task_id=self.task_id,
            status=parse_status(self.status),
            position=parse_position(self.position),
        )
