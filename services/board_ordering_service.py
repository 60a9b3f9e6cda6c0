"""
Board Ordering Service
Transactional, ownership-checked task mutations for kanban boards.

Each public mutation runs as one transaction: ownership is checked through the
board directory, the affected columns are locked, the ordering engine plans the
reflow and the position store writes it. Any failure rolls the whole operation
back. Store conflicts are retried once against fresh state.
"""

import logging
from functools import wraps
from typing import Optional, List, Dict, Sequence, Union, Mapping, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, retry_if_exception_type, before_sleep_log

from models import db, Task, TaskStatus, TaskPriority
from services.board_directory import BoardDirectory
from services.ordering_engine import OrderingEngine, ColumnKey, Placement, ReflowPlan
from services.ordering_errors import NotFoundError, ValidationError, OrderingStoreError, ConcurrentMoveError
from services.position_store import PositionStore
from services.task_payloads import (
    TaskPatch,
    TaskPositionUpdate,
    parse_status,
    parse_priority,
    parse_position,
    clean_title,
    clean_description,
)

logger = logging.getLogger(__name__)

STORE_CONFLICTS = (IntegrityError, OperationalError, ConcurrentMoveError)
MAX_ATTEMPTS = 2


def atomic_operation(func):
    """
    Run a service method as a single transaction.

    Commits on success and rolls back on any exception. Store conflicts, and
    tasks that changed column before their columns were locked, are re-run
    once from scratch; a second failure, or any other storage error, surfaces
    as OrderingStoreError. Caller errors propagate unchanged.
    """
    @retry(
        retry=retry_if_exception_type(STORE_CONFLICTS),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def attempt(self, *args, **kwargs):
        try:
            result = func(self, *args, **kwargs)
            self.session.commit()
            return result
        except Exception:
            self.session.rollback()
            raise

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return attempt(self, *args, **kwargs)
        except (SQLAlchemyError, ConcurrentMoveError) as e:
            logger.error(f"[TASK_ORDER] {func.__name__} failed in the store: {e}", exc_info=True)
            raise OrderingStoreError(
                f"Could not complete {func.__name__}",
                context={'operation': func.__name__},
            ) from e

    return wrapper


class BoardOrderingService:
    """
    Façade consumed by the HTTP layer. Every method takes the authenticated
    user id explicitly.
    """

    def __init__(self, session: Optional[Session] = None, boards: Optional[BoardDirectory] = None):
        self.session = session if session is not None else db.session
        self.store = PositionStore(self.session)
        self.boards = boards if boards is not None else BoardDirectory(self.session)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @atomic_operation
    def create_task(self, board_id: int, user_id: int, title: str,
                    status: Optional[str] = None, position: Optional[int] = None,
                    description: Optional[str] = None, priority: Optional[str] = None) -> Task:
        """Create a task, appended to its column unless a position is requested."""
        title = clean_title(title)
        status = parse_status(status) if status is not None else TaskStatus.TODO.value
        priority = parse_priority(priority) if priority is not None else TaskPriority.MEDIUM.value
        if position is not None:
            parse_position(position)

        self.boards.require_owner(board_id, user_id)

        key = ColumnKey(board_id, status)
        column = self.store.lock_columns([key])[key]
        plan = OrderingEngine.insert(column, position)
        self.store.apply_plan(plan)

        task = Task(
            title=title,
            description=clean_description(description),
            priority=priority,
            status=status,
            position=plan.insert_position,
            board_id=board_id,
        )
        self.store.add_task(task)

        logger.info(f"[TASK_ORDER] Created task {task.id} at {key}#{task.position} by user {user_id}")
        return task

    @atomic_operation
    def update_task_fields(self, task_id: int, user_id: int,
                           patch: Union[TaskPatch, Mapping[str, Any]]) -> Task:
        """
        Apply a patch. A status change without a position appends to the
        destination column; a position alone moves within the current column.
        """
        patch = patch.validated() if isinstance(patch, TaskPatch) else TaskPatch.from_dict(patch)
        task = self._load_owned_task(task_id, user_id)
        if patch.is_empty:
            logger.debug(f"[TASK_ORDER] Empty patch for task {task.id}, nothing to update")
            return task

        if patch.status is not None and patch.status != task.status:
            self._relocate(task, patch.status, patch.position)
        elif patch.position is not None:
            self._relocate(task, task.status, patch.position)

        if patch.title is not None:
            task.title = patch.title
        if patch.description is not None or patch.clear_description:
            task.description = patch.description
        if patch.priority is not None:
            task.priority = patch.priority

        self.session.flush()
        logger.info(f"[TASK_ORDER] Updated task {task.id} by user {user_id}")
        return task

    @atomic_operation
    def move_task(self, task_id: int, user_id: int, new_status: str, new_position: int) -> Task:
        """Drop a single task onto (new_status, new_position)."""
        new_status = parse_status(new_status)
        new_position = parse_position(new_position)

        task = self._load_owned_task(task_id, user_id)
        plan = self._relocate(task, new_status, new_position)

        if plan.is_noop:
            logger.debug(f"[TASK_ORDER] Move of task {task.id} is a no-op")
        else:
            logger.info(
                f"[TASK_ORDER] Moved task {task.id} to {task.board_id}/{task.status}#{task.position} "
                f"by user {user_id}"
            )
        return task

    @atomic_operation
    def reorder_batch(self, board_id: int, user_id: int,
                      updates: Sequence[Union[TaskPositionUpdate, Mapping[str, Any]]]) -> List[int]:
        """
        Write client-supplied final (status, position) pairs for many tasks.

        The batch is all-or-nothing and must leave every touched column dense.
        Returns the acknowledged task ids in request order.
        """
        entries = [
            u.validated() if isinstance(u, TaskPositionUpdate) else TaskPositionUpdate.from_dict(u)
            for u in (updates or [])
        ]
        if not entries:
            raise ValidationError("No updates provided")

        self.boards.require_owner(board_id, user_id)

        task_ids = [entry.task_id for entry in entries]
        current = self.session.execute(
            select(Task.id, Task.status).where(Task.id.in_(task_ids), Task.board_id == board_id)
        ).all()
        if len(current) != len(set(task_ids)):
            missing = sorted(set(task_ids) - {task_id for task_id, _ in current})
            raise NotFoundError("One or more tasks not found", context={'task_ids': missing})

        keys = {ColumnKey(board_id, status) for _, status in current}
        keys |= {ColumnKey(board_id, entry.status) for entry in entries}
        columns = self.store.lock_columns(keys)
        for task_id, status in current:
            if task_id not in columns[ColumnKey(board_id, status)]:
                raise ConcurrentMoveError("Task moved before its column was locked",
                                          context={'task_id': task_id})

        placements = [Placement(e.task_id, ColumnKey(board_id, e.status), e.position) for e in entries]
        plan = OrderingEngine.batch_reorder(columns, placements)
        self.store.apply_plan(plan)

        logger.info(
            f"[REORDER] Updated positions for {len(plan.placements)} of {len(entries)} tasks "
            f"on board {board_id} by user {user_id}"
        )
        return task_ids

    @atomic_operation
    def remove_task(self, task_id: int, user_id: int) -> None:
        """Delete a task and close the gap it leaves in its column."""
        task = self._load_owned_task(task_id, user_id)
        key = ColumnKey(task.board_id, task.status)

        column = self.store.lock_columns([key])[key]
        self._require_in_column(task, column)
        plan = OrderingEngine.remove(column, task.id)
        self.store.apply_plan(plan)
        self.store.delete_task(task)

        logger.info(f"[TASK_ORDER] Removed task {task_id} from {key} by user {user_id}")

    @atomic_operation
    def compact_columns(self, board_id: Optional[int] = None) -> List[ColumnKey]:
        """
        Renumber every non-dense column (optionally of one board) to 0..n-1.
        Operator repair; no ownership check.
        """
        if board_id is not None and not self.boards.board_exists(board_id):
            raise NotFoundError("Board not found", context={'board_id': board_id})

        violations = self.store.density_violations(board_id)
        if not violations:
            return []

        columns = self.store.lock_columns(key for key, _ in violations)
        repaired = []
        for key, column in columns.items():
            plan = OrderingEngine.compact(column)
            if plan.is_noop:
                continue
            self.store.apply_plan(plan)
            repaired.append(key)
            logger.warning(f"[DENSITY] Renumbered column {key} ({len(column)} tasks)")
        return repaired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: int, user_id: int) -> Task:
        return self._load_owned_task(task_id, user_id)

    def list_board_tasks(self, board_id: int, user_id: int) -> List[Task]:
        """All tasks of a board, ordered by status then position."""
        self._touch_board(board_id, user_id)
        # Read after the touch commits; returned rows stay loaded
        return self.store.board_tasks(board_id)

    def get_board_columns(self, board_id: int, user_id: int) -> Dict[str, List[Task]]:
        """Tasks grouped per status column, every status present, top to bottom."""
        columns = {status.value: [] for status in TaskStatus}
        for task in self.list_board_tasks(board_id, user_id):
            columns.setdefault(task.status, []).append(task)
        return columns

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @atomic_operation
    def _touch_board(self, board_id: int, user_id: int):
        board = self.boards.require_owner(board_id, user_id)
        board.touch()

    def _load_owned_task(self, task_id: int, user_id: int) -> Task:
        """
        Unlocked read of an owned task. Mutations lock the task's columns
        afterwards, which covers the task row itself.
        """
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", context={'task_id': task_id})
        self.boards.require_owner(task.board_id, user_id)
        return task

    @staticmethod
    def _require_in_column(task: Task, column):
        if task.id not in column:
            logger.info(f"[TASK_ORDER] Task {task.id} left {column.key} before the lock, restarting")
            raise ConcurrentMoveError(
                "Task moved before its column was locked",
                context={'task_id': task.id, 'column': str(column.key)},
            )

    def _relocate(self, task: Task, new_status: str, new_position: Optional[int]) -> ReflowPlan:
        """
        Move `task` to (new_status, new_position) inside the current transaction.

        Source and destination columns are the only locks taken, in sorted
        order; locking refreshes the task's own status and position. A task
        that changed column since it was read restarts the operation. A
        missing position means the end of the destination column.
        """
        source_key = ColumnKey(task.board_id, task.status)
        target_key = ColumnKey(task.board_id, new_status)
        columns = self.store.lock_columns({source_key, target_key})
        self._require_in_column(task, columns[source_key])

        if new_position is None:
            if source_key == target_key:
                return ReflowPlan()
            new_position = columns[target_key].next_position()

        if source_key == target_key:
            plan = OrderingEngine.move_within_column(columns[source_key], task.id, new_position)
        else:
            plan = OrderingEngine.move_across_columns(columns[source_key], columns[target_key], task.id, new_position)

        self.store.apply_plan(plan)
        return plan
