"""
Position Store - durable task positions per (board_id, status) column

Thin SQLAlchemy layer under the ordering engine: column snapshots, row locks
taken in a globally consistent order, and single-statement range shifts.
Never commits; the board ordering service owns the transaction.
"""

import logging
from typing import Optional, Dict, List, Tuple, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models import Task
from services.ordering_engine import ColumnKey, ColumnSnapshot, ReflowPlan

logger = logging.getLogger(__name__)


class PositionStore:
    """Row access for task ordering on top of a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: int) -> Optional[Task]:
        """Plain read; callers lock through lock_columns."""
        return self.session.execute(select(Task).where(Task.id == task_id)).scalars().first()

    def read_column(self, key: ColumnKey) -> ColumnSnapshot:
        """Non-locking snapshot of one column."""
        rows = self.session.execute(self._column_query(key)).scalars().all()
        return ColumnSnapshot.from_pairs(key, ((task.id, task.position) for task in rows))

    def lock_columns(self, keys: Iterable[ColumnKey]) -> Dict[ColumnKey, ColumnSnapshot]:
        """
        Lock the rows of every requested column and return fresh snapshots.

        Columns are locked in ascending (board_id, status) order so two
        transactions touching the same pair of columns cannot deadlock.
        """
        snapshots = {}
        for key in sorted(set(keys)):
            stmt = (
                self._column_query(key)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            rows = self.session.execute(stmt).scalars().all()
            snapshots[key] = ColumnSnapshot.from_pairs(key, ((task.id, task.position) for task in rows))
        return snapshots

    def board_tasks(self, board_id: int) -> List[Task]:
        stmt = (
            select(Task)
            .where(Task.board_id == board_id)
            .order_by(Task.status.asc(), Task.position.asc(), Task.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def density_violations(self, board_id: Optional[int] = None) -> List[Tuple[ColumnKey, List[int]]]:
        """Columns whose positions are not exactly 0..n-1."""
        stmt = select(Task.board_id, Task.status, Task.position).order_by(
            Task.board_id.asc(), Task.status.asc(), Task.position.asc()
        )
        if board_id is not None:
            stmt = stmt.where(Task.board_id == board_id)

        columns: Dict[ColumnKey, List[int]] = {}
        for row_board_id, status, position in self.session.execute(stmt):
            columns.setdefault(ColumnKey(row_board_id, status), []).append(position)

        return [
            (key, positions)
            for key, positions in columns.items()
            if positions != list(range(len(positions)))
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        self.session.add(task)
        self.session.flush()  # Flush to get task.id before commit
        return task

    def delete_task(self, task: Task):
        self.session.delete(task)
        self.session.flush()

    def shift_range(self, key: ColumnKey, start: int, stop: Optional[int], delta: int,
                    exclude_task_id: Optional[int] = None) -> int:
        """Move every task of the column with start <= position <= stop by delta, in one UPDATE."""
        stmt = update(Task).where(
            Task.board_id == key.board_id,
            Task.status == key.status,
            Task.position >= start,
        )
        if stop is not None:
            stmt = stmt.where(Task.position <= stop)
        if exclude_task_id is not None:
            stmt = stmt.where(Task.id != exclude_task_id)
        stmt = stmt.values(position=Task.position + delta).execution_options(synchronize_session="fetch")

        result = self.session.execute(stmt)
        logger.debug(
            f"[TASK_ORDER] Shifted {result.rowcount} rows in {key} "
            f"[{start}, {'end' if stop is None else stop}] by {delta:+d}"
        )
        return result.rowcount

    def place(self, task_id: int, key: ColumnKey, position: int):
        stmt = (
            update(Task)
            .where(Task.id == task_id)
            .values(board_id=key.board_id, status=key.status, position=position)
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)

    def apply_plan(self, plan: ReflowPlan) -> int:
        """
        Execute a reflow plan: range shifts first, then placements.

        The insert placement (task_id None) is skipped; the caller creates that row.
        Returns the number of statements issued.
        """
        statements = 0
        for shift in plan.shifts:
            self.shift_range(shift.key, shift.start, shift.stop, shift.delta, shift.exclude_task_id)
            statements += 1
        for placement in plan.placements:
            if placement.task_id is None:
                continue
            self.place(placement.task_id, placement.key, placement.position)
            statements += 1
        self.session.flush()
        return statements

    @staticmethod
    def _column_query(key: ColumnKey):
        return (
            select(Task)
            .where(Task.board_id == key.board_id, Task.status == key.status)
            .order_by(Task.position.asc(), Task.id.asc())
        )
