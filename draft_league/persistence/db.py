"""
Database connection, initialization and write transactions.
"""
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from draft_league.config import DB_PATH_ENV

from .schema import all_schema_sql


def _column_names(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.execute(f"PRAGMA table_info({table})")
    return [row[1] for row in cur.fetchall()]


def _run_phase_acquisition_tracking(conn: sqlite3.Connection) -> None:
    """Add acquisition metadata to roster_slots. NULL on existing rows = draft-era."""
    cols = _column_names(conn, "roster_slots")
    if "acquired_week" not in cols:
        conn.execute("ALTER TABLE roster_slots ADD COLUMN acquired_week INTEGER")
    if "acquired_via" not in cols:
        conn.execute("ALTER TABLE roster_slots ADD COLUMN acquired_via TEXT")
    if "acquired_transaction_id" not in cols:
        conn.execute("ALTER TABLE roster_slots ADD COLUMN acquired_transaction_id INTEGER")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS ix_roster_slots_transaction ON roster_slots(acquired_transaction_id)"
    )


def _run_phase_complex_bans(conn: sqlite3.Connection) -> None:
    """Add complex_ban_reason to season_prices (price -1 rows)."""
    cols = _column_names(conn, "season_prices")
    if "complex_ban_reason" not in cols:
        conn.execute("ALTER TABLE season_prices ADD COLUMN complex_ban_reason TEXT")


def _run_phase_match_replays(conn: sqlite3.Connection) -> None:
    """Add is_forfeit and replay_url to matches."""
    cols = _column_names(conn, "matches")
    if "is_forfeit" not in cols:
        conn.execute("ALTER TABLE matches ADD COLUMN is_forfeit INTEGER NOT NULL DEFAULT 0")
    if "replay_url" not in cols:
        conn.execute("ALTER TABLE matches ADD COLUMN replay_url TEXT")


# Default DB path (project root / data / league.db)
def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "data" / "league.db"


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path: explicit setting, then environment, then default."""
    if _db_path is not None:
        return _db_path
    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        return Path(env_path)
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection in autocommit mode.
    Multi-statement writes go through transaction(). Caller closes the connection.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None, timeout=30.0)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block as one write transaction.
    BEGIN IMMEDIATE takes the write lock up front, so read-validate-write
    sequences on budgets are serialized across connections.
    Nested use joins the outer transaction.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist, then apply column migrations."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        _run_phase_acquisition_tracking(conn)
        _run_phase_complex_bans(conn)
        _run_phase_match_replays(conn)
        conn.commit()
    finally:
        conn.close()
