"""
Database connection and initialization.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from .schema import all_schema_sql

# Seconds a writer waits on a locked database before sqlite raises "database is locked".
BUSY_TIMEOUT_SECONDS = 30.0


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Autocommit mode (isolation_level=None): callers open transactions explicitly with
    BEGIN IMMEDIATE so the read-check-write of a save holds the write lock.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str | Path) -> None:
    """Create or ensure all tables exist."""
    conn = get_connection(db_path)
    try:
        conn.executescript(all_schema_sql())
    finally:
        conn.close()
