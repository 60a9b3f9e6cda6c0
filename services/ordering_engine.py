"""
Ordering Engine - position reflow planner for kanban columns

Given snapshots of the affected column(s) and a requested change, computes the
range shifts and placements that keep every (board_id, status) column dense:
positions form exactly 0..n-1. Pure computation; the position store executes
the resulting plan and the board ordering service owns the transaction.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple, Iterable, Mapping, Sequence

from services.ordering_errors import NotFoundError, ValidationError


@dataclass(frozen=True, order=True)
class ColumnKey:
    """(board_id, status) pair. Sort order is the global lock order."""
    board_id: int
    status: str

    def __str__(self):
        return f"{self.board_id}/{self.status}"


@dataclass(frozen=True)
class Slot:
    task_id: Optional[int]
    position: int


@dataclass(frozen=True)
class ColumnSnapshot:
    """Tasks of one column, ascending by position."""
    key: ColumnKey
    slots: Tuple[Slot, ...] = ()

    @classmethod
    def from_pairs(cls, key: ColumnKey, pairs: Iterable[Tuple[Optional[int], int]]) -> "ColumnSnapshot":
        slots = sorted(
            (Slot(task_id, position) for task_id, position in pairs),
            key=lambda s: (s.position, s.task_id is None, s.task_id or 0),
        )
        return cls(key=key, slots=tuple(slots))

    @classmethod
    def from_order(cls, key: ColumnKey, task_ids: Sequence[int]) -> "ColumnSnapshot":
        """Build a dense snapshot from task ids listed top to bottom."""
        return cls.from_pairs(key, ((task_id, index) for index, task_id in enumerate(task_ids)))

    def __len__(self):
        return len(self.slots)

    def __contains__(self, task_id):
        return any(slot.task_id == task_id for slot in self.slots)

    @property
    def task_ids(self) -> List[Optional[int]]:
        return [slot.task_id for slot in self.slots]

    @property
    def positions(self) -> List[int]:
        return [slot.position for slot in self.slots]

    def as_dict(self) -> Dict[Optional[int], int]:
        return {slot.task_id: slot.position for slot in self.slots}

    def position_of(self, task_id: int) -> int:
        for slot in self.slots:
            if slot.task_id == task_id:
                return slot.position
        raise NotFoundError(
            f"Task {task_id} is not in column {self.key}",
            context={'task_id': task_id, 'board_id': self.key.board_id, 'status': self.key.status},
        )

    def next_position(self) -> int:
        """Slot an appended task takes: max + 1, or 0 for an empty column."""
        return self.slots[-1].position + 1 if self.slots else 0

    def is_dense(self) -> bool:
        return self.positions == list(range(len(self.slots)))


@dataclass(frozen=True)
class RangeShift:
    """
    Move every task of `key` with start <= position <= stop by `delta`.
    A stop of None leaves the range open-ended; `exclude_task_id` is skipped.
    """
    key: ColumnKey
    start: int
    stop: Optional[int]
    delta: int
    exclude_task_id: Optional[int] = None

    def covers(self, key: ColumnKey, slot: Slot) -> bool:
        if key != self.key or slot.task_id == self.exclude_task_id:
            return False
        if slot.position < self.start:
            return False
        return self.stop is None or slot.position <= self.stop


@dataclass(frozen=True)
class Placement:
    """Final column and position of one task. task_id None is the row being inserted."""
    task_id: Optional[int]
    key: ColumnKey
    position: int


@dataclass(frozen=True)
class PositionChange:
    task_id: int
    position: int
    status: Optional[str] = None


@dataclass(frozen=True)
class ReflowPlan:
    shifts: Tuple[RangeShift, ...] = field(default_factory=tuple)
    placements: Tuple[Placement, ...] = field(default_factory=tuple)

    @property
    def is_noop(self) -> bool:
        return not self.shifts and not self.placements

    @property
    def insert_position(self) -> Optional[int]:
        for placement in self.placements:
            if placement.task_id is None:
                return placement.position
        return None

    @property
    def touched_columns(self) -> List[ColumnKey]:
        keys = {shift.key for shift in self.shifts} | {p.key for p in self.placements}
        return sorted(keys)

    def apply(self, columns: Mapping[ColumnKey, ColumnSnapshot]) -> Dict[ColumnKey, ColumnSnapshot]:
        """
        Simulate the plan against in-memory snapshots.

        Shifts run before placements, in the same order the position store
        issues its UPDATE statements. Columns not named by the plan pass through.
        """
        state: Dict[Optional[int], Tuple[ColumnKey, int]] = {}
        for key, snapshot in columns.items():
            for slot in snapshot.slots:
                state[slot.task_id] = (key, slot.position)

        for shift in self.shifts:
            for task_id, (key, position) in list(state.items()):
                if shift.covers(key, Slot(task_id, position)):
                    state[task_id] = (key, position + shift.delta)

        for placement in self.placements:
            state[placement.task_id] = (placement.key, placement.position)

        grouped: Dict[ColumnKey, List[Tuple[Optional[int], int]]] = {key: [] for key in columns}
        for task_id, (key, position) in state.items():
            grouped.setdefault(key, []).append((task_id, position))
        return {key: ColumnSnapshot.from_pairs(key, pairs) for key, pairs in grouped.items()}

    def changes(self, columns: Mapping[ColumnKey, ColumnSnapshot]) -> List[PositionChange]:
        """Exact (task_id, new_position[, new_status]) set the plan writes."""
        before: Dict[int, Tuple[ColumnKey, int]] = {}
        for key, snapshot in columns.items():
            for slot in snapshot.slots:
                if slot.task_id is not None:
                    before[slot.task_id] = (key, slot.position)

        result = []
        for key, snapshot in self.apply(columns).items():
            for slot in snapshot.slots:
                if slot.task_id is None:
                    continue
                old_key, old_position = before.get(slot.task_id, (None, None))
                if old_key == key and old_position == slot.position:
                    continue
                new_status = key.status if old_key is not None and old_key.status != key.status else None
                result.append(PositionChange(slot.task_id, slot.position, new_status))
        return sorted(result, key=lambda c: c.task_id)


def _require_position(position) -> int:
    if isinstance(position, bool) or not isinstance(position, int):
        raise ValidationError(f"Position must be an integer, got {position!r}", context={'position': position})
    if position < 0:
        raise ValidationError(f"Position must be non-negative, got {position}", context={'position': position})
    return position


class OrderingEngine:
    """
    Reflow planner. Every method returns a ReflowPlan and touches only the
    tasks that sit between the vacated and the claimed slot.
    """

    @staticmethod
    def insert(column: ColumnSnapshot, requested_position: Optional[int] = None) -> ReflowPlan:
        """
        Plan a new task in `column`.

        Without a requested position the task is appended and nothing else moves.
        Otherwise tasks at or below the requested slot move down one; a slot past
        the end is clamped to an append.
        """
        append_at = column.next_position()
        if requested_position is None:
            return ReflowPlan(placements=(Placement(None, column.key, append_at),))

        position = min(_require_position(requested_position), append_at)
        shifts = ()
        if position < append_at:
            shifts = (RangeShift(column.key, position, None, +1),)
        return ReflowPlan(shifts=shifts, placements=(Placement(None, column.key, position),))

    @staticmethod
    def move_within_column(column: ColumnSnapshot, task_id: int, new_position: int) -> ReflowPlan:
        """
        Rotate the sub-range between the old and new slot by one.

        Moving down, tasks in (old, new] move up one; moving up, tasks in
        [new, old) move down one. A target past the last slot is clamped to it.
        """
        _require_position(new_position)
        old_position = column.position_of(task_id)
        target = min(new_position, column.next_position() - 1)

        if target == old_position:
            return ReflowPlan()

        if target > old_position:
            shift = RangeShift(column.key, old_position + 1, target, -1, exclude_task_id=task_id)
        else:
            shift = RangeShift(column.key, target, old_position - 1, +1, exclude_task_id=task_id)
        return ReflowPlan(shifts=(shift,), placements=(Placement(task_id, column.key, target),))

    @staticmethod
    def move_across_columns(source: ColumnSnapshot, destination: ColumnSnapshot,
                            task_id: int, to_position: int) -> ReflowPlan:
        """
        Close the gap in `source` and open one in `destination`.

        The two shifts address disjoint (board_id, status) pairs, so their order
        does not matter. A target past the end of `destination` appends.
        """
        if source.key == destination.key:
            return OrderingEngine.move_within_column(source, task_id, to_position)
        if source.key.board_id != destination.key.board_id:
            raise ValidationError(
                "A task cannot move between boards",
                context={'task_id': task_id, 'from_board_id': source.key.board_id,
                         'to_board_id': destination.key.board_id},
            )

        _require_position(to_position)
        from_position = source.position_of(task_id)
        target = min(to_position, destination.next_position())

        shifts = []
        if from_position < source.next_position() - 1:
            shifts.append(RangeShift(source.key, from_position + 1, None, -1, exclude_task_id=task_id))
        if target < destination.next_position():
            shifts.append(RangeShift(destination.key, target, None, +1))
        return ReflowPlan(shifts=tuple(shifts), placements=(Placement(task_id, destination.key, target),))

    @staticmethod
    def remove(column: ColumnSnapshot, task_id: int) -> ReflowPlan:
        """Compact the column around a task that is about to be deleted."""
        position = column.position_of(task_id)
        if position >= column.next_position() - 1:
            return ReflowPlan()
        return ReflowPlan(shifts=(RangeShift(column.key, position + 1, None, -1, exclude_task_id=task_id),))

    @staticmethod
    def compact(column: ColumnSnapshot) -> ReflowPlan:
        """Renumber a column to 0..n-1, keeping its current order."""
        placements = tuple(
            Placement(slot.task_id, column.key, index)
            for index, slot in enumerate(column.slots)
            if slot.position != index
        )
        return ReflowPlan(placements=placements)

    @staticmethod
    def batch_reorder(columns: Mapping[ColumnKey, ColumnSnapshot],
                      placements: Sequence[Placement]) -> ReflowPlan:
        """
        Validate client-supplied final states and return them as a plan.

        `columns` must hold every column the batch reads from or writes to. After
        the batch, each of those columns (untouched rows keep their positions)
        must be dense, otherwise the whole batch is rejected.
        """
        if not placements:
            raise ValidationError("No updates provided")

        current: Dict[int, Tuple[ColumnKey, int]] = {}
        for key, snapshot in columns.items():
            for slot in snapshot.slots:
                current[slot.task_id] = (key, slot.position)

        seen = set()
        for placement in placements:
            if placement.task_id in seen:
                raise ValidationError(
                    f"Task {placement.task_id} appears more than once in the batch",
                    context={'task_id': placement.task_id},
                )
            seen.add(placement.task_id)
            _require_position(placement.position)
            if placement.task_id not in current:
                raise NotFoundError(f"Task {placement.task_id} not found", context={'task_id': placement.task_id})
            if placement.key not in columns:
                raise ValidationError(f"Column {placement.key} was not loaded for this batch")

        plan = ReflowPlan(placements=tuple(placements))
        for key, snapshot in plan.apply(columns).items():
            if not snapshot.is_dense():
                raise ValidationError(
                    f"Batch leaves column {key} non-dense",
                    context={'board_id': key.board_id, 'status': key.status, 'positions': snapshot.positions},
                )

        changed = tuple(p for p in placements if current[p.task_id] != (p.key, p.position))
        return ReflowPlan(placements=changed)
