"""
Snapshot persistence for the in-memory vector store.

save_snapshot writes every entry to SQLite and marks the store synced;
restore_snapshot loads them back through InMemoryVectorStore.load_entries.
"""

import json
from datetime import datetime
from typing import Any, Optional

from ..util.logging import logger
from ..vector.memory_store import InMemoryVectorStore
from ..vector.types import SourceType, VectorEntry
from .db import get_db, init_db


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, 'tolist'):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _entry_row(position: int, entry: VectorEntry) -> tuple:
    return (
        position,
        entry.id,
        entry.source_type.value,
        entry.content,
        json.dumps(list(entry.embedding)),
        json.dumps(entry.metadata, default=_json_default),
        entry.created_at.isoformat(),
        entry.updated_at.isoformat(),
    )


def _row_entry(row: tuple) -> VectorEntry:
    entry_id, source_type, content, embedding, metadata, created_at, updated_at = row
    return VectorEntry(
        id=entry_id,
        source_type=SourceType(source_type),
        content=content,
        embedding=json.loads(embedding),
        metadata=json.loads(metadata),
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )


def save_snapshot(store: InMemoryVectorStore, db_path: Optional[str] = None) -> int:
    """
    Replace the stored snapshot with the store's current entries.

    Returns the number of entries written. The store is marked synced only
    after the transaction commits.
    """
    init_db(db_path)
    entries = store.get_all()

    with get_db(db_path) as conn:
        try:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM vector_entries')
            cursor.executemany(
                'INSERT INTO vector_entries '
                '(position, id, source_type, content, embedding, metadata, created_at, updated_at) '
                'VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
                [_entry_row(position, entry) for position, entry in enumerate(entries)],
            )
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.log_operation("persistence.save", "failed", {"reason": str(e)})
            raise

    store.sync()
    logger.log_operation("persistence.save", "success", {"count": len(entries)})
    return len(entries)


def restore_snapshot(store: InMemoryVectorStore, db_path: Optional[str] = None) -> int:
    """
    Replace the store's entries with the stored snapshot.

    Returns the number of entries loaded; an empty or fresh database loads
    nothing and leaves the store empty and synced.
    """
    init_db(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            'SELECT id, source_type, content, embedding, metadata, created_at, updated_at '
            'FROM vector_entries ORDER BY position'
        )
        entries = [_row_entry(row) for row in cursor.fetchall()]

    store.load_entries(entries)
    logger.log_operation("persistence.restore", "success", {"count": len(entries)})
    return len(entries)
