"""SQLite connection management with WAL mode and schema initialization."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from polytracker.errors import ConflictRetry

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

MEMORY = ":memory:"


def get_connection(
    db_path: Path | str,
    thread_safe: bool = False,
    busy_timeout: float = 0.5,
) -> sqlite3.Connection:
    """Create and initialize a SQLite connection.

    Transactions are explicit (see `transaction`), rows come back as
    sqlite3.Row.

    Args:
        db_path: Path to the database file, or ":memory:".
        thread_safe: If True, allow cross-thread usage.
        busy_timeout: Seconds to wait on a locked database before the
            write surfaces as a conflict.

    Returns:
        Initialized connection with WAL mode and schema applied.
    """
    if str(db_path) != MEMORY:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path),
        check_same_thread=not thread_safe,
        timeout=busy_timeout,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")

    with open(SCHEMA_PATH) as f:
        conn.executescript(f.read())

    return conn


def _is_contention(exc: sqlite3.OperationalError) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block as one atomic unit: commit on success, roll back on error.

    Lock contention from a concurrent writer is raised as ConflictRetry so
    callers can retry the whole unit.
    """
    try:
        conn.execute("BEGIN")
    except sqlite3.OperationalError as exc:
        if _is_contention(exc):
            raise ConflictRetry(str(exc)) from exc
        raise
    try:
        yield conn
        conn.execute("COMMIT")
    except sqlite3.OperationalError as exc:
        conn.rollback()
        if _is_contention(exc):
            raise ConflictRetry(str(exc)) from exc
        raise
    except BaseException:
        conn.rollback()
        raise
