#!/usr/bin/env python3
"""
Rebuild every coach rating and the rating history from the completed matches.
Run from project root: python3 scripts/recalculate_ratings.py [--db path/to/league.db]
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from draft_league.persistence import get_connection, init_db
from draft_league.persistence.db import get_db_path, set_db_path
from draft_league.services.rating_service import RatingService


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay all completed matches and rewrite coach ratings.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database (default: data/league.db)")
    parser.add_argument("--verbose", action="store_true", help="Log skipped matches and progress")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.db is not None:
        set_db_path(args.db)
    init_db(db_path=get_db_path())

    conn = get_connection()
    try:
        summary = RatingService().recalculate_all(conn)
    finally:
        conn.close()
    print(json.dumps(summary.to_dict(), indent=2))


if __name__ == "__main__":
    main()
