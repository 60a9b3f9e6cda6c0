"""
Root pytest configuration and fixtures for unit and integration tests.
"""
import pytest
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Test configuration
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing-only'
os.environ.setdefault('LOG_LEVEL', 'DEBUG')

OWNER_ID = 101
OTHER_USER_ID = 202


@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask application."""
    from app import create_app
    from models import db

    test_app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })

    with test_app.app_context():
        db.create_all()
        yield test_app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Database session; every row written by the test is removed afterwards."""
    from sqlalchemy import delete
    from models import db, Board, Task

    yield db.session

    db.session.rollback()
    db.session.execute(delete(Task))
    db.session.execute(delete(Board))
    db.session.commit()
    db.session.expunge_all()


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture
def make_board(db_session):
    """Factory creating boards owned by the test owner unless told otherwise."""
    from models import Board

    def _make_board(name='Sprint board', user_id=OWNER_ID):
        board = Board(name=name, user_id=user_id)
        db_session.add(board)
        db_session.commit()
        return board

    return _make_board


@pytest.fixture
def board(make_board):
    return make_board()


@pytest.fixture
def seed_column(db_session):
    """
    Factory writing tasks straight to the table, bypassing the service.

    `positions` defaults to 0..n-1; pass explicit positions to build gaps.
    Returns {title: task_id}.
    """
    from models import Task

    def _seed_column(board, status, titles, positions=None):
        positions = positions if positions is not None else range(len(titles))
        ids = {}
        for title, position in zip(titles, positions):
            task = Task(title=title, status=status, position=position, board_id=board.id)
            db_session.add(task)
            db_session.flush()
            ids[title] = task.id
        db_session.commit()
        return ids

    return _seed_column


@pytest.fixture
def column_state(db_session):
    """Read a column back as {title: position}, ordered top to bottom."""
    from sqlalchemy import select
    from models import Task

    def _column_state(board, status):
        db_session.expire_all()
        rows = db_session.execute(
            select(Task.title, Task.position)
            .where(Task.board_id == board.id, Task.status == status)
            .order_by(Task.position, Task.id)
        ).all()
        return {title: position for title, position in rows}

    return _column_state


@pytest.fixture
def service(db_session):
    from services.board_ordering_service import BoardOrderingService
    return BoardOrderingService(db_session)
