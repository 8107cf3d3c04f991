"""
SQLite storage for vector store snapshots.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from .config import ensure_db_directory, get_db_path


@contextmanager
def get_db(db_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    db_path = db_path or get_db_path()
    ensure_db_directory(db_path)
    conn = sqlite3.connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None) -> None:
    """Initialize the database with required tables."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS vector_entries (
                position INTEGER NOT NULL,
                id TEXT PRIMARY KEY,
                source_type TEXT NOT NULL,
                content TEXT NOT NULL,
                embedding TEXT NOT NULL,  -- JSON array of floats
                metadata TEXT NOT NULL,   -- JSON object
                created_at TEXT NOT NULL, -- ISO 8601
                updated_at TEXT NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_vector_entries_position ON vector_entries(position)')

        conn.commit()


def health_check(db_path: Optional[str] = None) -> bool:
    """Check that the snapshot table exists."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='vector_entries'")
            return cursor.fetchone() is not None
    except sqlite3.Error:
        return False
