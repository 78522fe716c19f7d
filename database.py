"""
Database setup for the timestamp cache.
"""

import sqlite3
import os
from contextlib import contextmanager


# Resolved on every call so tests can point CACHE_DATABASE_PATH elsewhere before use
def _get_database_path():
    return os.getenv("CACHE_DATABASE_PATH", "pagination_cache.db")


def get_connection(db_path: str = None) -> sqlite3.Connection:
    """Get a database connection with row factory."""
    conn = sqlite3.connect(db_path or _get_database_path())
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(db_path: str = None):
    """Context manager for database connections."""
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database schema."""
    with get_db(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS timestamp_cache (
                cache_key TEXT PRIMARY KEY,
                updated TEXT,
                total_items INTEGER NOT NULL,
                timestamps TEXT NOT NULL,
                stored_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)


def reset_db(db_path: str = None):
    """Reset the database (for testing)."""
    path = db_path or _get_database_path()
    if path != ":memory:" and os.path.exists(path):
        os.remove(path)
    init_db(path)
