"""Renumber task positions densely per board column

Revision ID: 20260915_090000
Revises: 20260901_100000
Create Date: 2026-09-15 09:00:00

"""
from alembic import op


# revision identifiers, used by Alembic.
revision = '20260915_090000'
down_revision = '20260901_100000'
branch_labels = None
depends_on = None


def upgrade():
    # Rows imported before the ordering service existed may share or skip positions.
    # Keep their relative order and renumber each (board_id, status) column 0..n-1.
    op.execute("""
        UPDATE tasks
        SET position = (
            SELECT sub.row_num
            FROM (
                SELECT id,
                       ROW_NUMBER() OVER (
                           PARTITION BY board_id, status
                           ORDER BY position, created_at, id
                       ) - 1 AS row_num
                FROM tasks
            ) AS sub
            WHERE sub.id = tasks.id
        )
    """)


def downgrade():
    # Previous positions are not recoverable; dense positions remain valid.
    pass
