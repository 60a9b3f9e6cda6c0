"""
Board Directory - ownership lookups used before any ordering operation.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Board
from services.ordering_errors import NotFoundError, AccessDeniedError

logger = logging.getLogger(__name__)


class BoardDirectory:
    """Read-only view of boards and their owners."""

    def __init__(self, session: Session):
        self.session = session

    def get_board(self, board_id: int) -> Optional[Board]:
        return self.session.execute(select(Board).where(Board.id == board_id)).scalars().first()

    def board_exists(self, board_id: int) -> bool:
        return self.get_board(board_id) is not None

    def board_owner(self, board_id: int) -> Optional[int]:
        return self.session.execute(select(Board.user_id).where(Board.id == board_id)).scalar()

    def require_owner(self, board_id: int, user_id: int) -> Board:
        """
        Return the board if `user_id` owns it.

        Raises NotFoundError when the board is missing and AccessDeniedError
        when it belongs to someone else.
        """
        owner = self.board_owner(board_id)
        if owner is None:
            raise NotFoundError("Board not found", context={'board_id': board_id})
        if owner != user_id:
            logger.warning(f"[TASK_ORDER] User {user_id} denied access to board {board_id}")
            raise AccessDeniedError("Access denied", context={'board_id': board_id})
        return self.get_board(board_id)
