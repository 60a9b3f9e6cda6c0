#!/usr/bin/env python3
"""
Column density audit
Reports board columns whose task positions are not exactly 0..n-1 and,
with --repair, renumbers them in place keeping their current order.
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

from services.board_ordering_service import BoardOrderingService
from services.position_store import PositionStore

logger = logging.getLogger(__name__)


def audit_column_density(board_id=None, repair=False):
    """
    Audit (and optionally repair) column density. Must run inside an app context.

    Returns:
        list: (ColumnKey, positions) pairs still violating density afterwards
    """
    service = BoardOrderingService()
    violations = PositionStore(service.session).density_violations(board_id)

    if not violations:
        print("✅ All columns are dense")
        return []

    print(f"Found {len(violations)} non-dense column(s):")
    for key, positions in violations:
        print(f"  - board {key.board_id} / {key.status}: {positions}")

    if not repair:
        return violations

    repaired = service.compact_columns(board_id)
    print(f"🔧 Renumbered {len(repaired)} column(s)")

    remaining = PositionStore(service.session).density_violations(board_id)
    if remaining:
        logger.error(f"[DENSITY] {len(remaining)} column(s) still non-dense after repair")
    return remaining


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Audit task position density per board column")
    parser.add_argument("--board-id", type=int, help="Only audit this board")
    parser.add_argument("--repair", action="store_true", help="Renumber non-dense columns (default is report only)")
    args = parser.parse_args(argv)

    from app import create_app

    app = create_app()
    with app.app_context():
        remaining = audit_column_density(board_id=args.board_id, repair=args.repair)
    return 1 if remaining else 0


if __name__ == "__main__":
    sys.exit(main())
