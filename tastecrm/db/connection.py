"""
Database connection utilities.
Centralizes DB_PATH, get_db(), get_db_conn() context manager, transactions, and gen_id().
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager

from tastecrm import config

logger = logging.getLogger("tastecrm.db")

DB_PATH = config.DB_PATH


def get_db():
    """Get a database connection with row_factory for dict-like access."""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA journal_mode={config.DB_JOURNAL_MODE}")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def get_db_conn():
    """Context manager for database connections. Ensures connections are always closed."""
    conn = get_db()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction():
    """Explicit transaction on a fresh connection.

    The connection runs in autocommit mode so BEGIN/SAVEPOINT/COMMIT are issued
    by us, not by the sqlite3 module. Rolls back if the block raises.
    """
    with get_db_conn() as conn:
        conn.isolation_level = None
        conn.execute("BEGIN")
        try:
            yield conn
        except Exception:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")


def insert_each(conn, sql: str, rows: list, label: str) -> list:
    """Insert rows one at a time inside the caller's transaction.

    Each insert gets its own savepoint: a row that violates a constraint is
    rolled back alone and the rest of the batch continues.

    Returns:
        Indexes (into rows) of the rows that were inserted.
    """
    inserted = []
    for i, params in enumerate(rows):
        conn.execute("SAVEPOINT insert_doc")
        try:
            conn.execute(sql, params)
        except sqlite3.Error as e:
            conn.execute("ROLLBACK TO insert_doc")
            logger.warning("Skipping %s document %d: %s", label, i, e,
                           extra={"row_index": i})
        else:
            inserted.append(i)
        conn.execute("RELEASE insert_doc")
    return inserted


def gen_id(prefix=""):
    """Generate a prefixed UUID."""
    short = uuid.uuid4().hex[:12]
    return f"{prefix}_{short}" if prefix else short
