"""
In-memory vector store with filtered cosine search and dirty/synced bookkeeping.

Durability belongs to an external layer: it calls sync() after writing the
entries out and load_entries() when restoring them at startup.
"""

import threading
import uuid
from copy import deepcopy
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..util.logging import logger
from .index import IVectorIndex, IVectorStore, LinearScanIndex
from .schemas import SearchOptions, VectorEntryInput, VectorEntryUpdate
from .similarity import check_dimension
from .types import SearchResult, SourceType, VectorEntry, VectorStoreStats


class InMemoryVectorStore(IVectorStore):
    """In-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self, dimension: Optional[int] = None, index: Optional[IVectorIndex] = None):
        """
        Args:
            dimension: Fixed embedding length. When None, the first entry added sets it.
            index: Ranking index, defaults to an exhaustive LinearScanIndex.
        """
        self._configured_dimension = dimension
        self._entries: Dict[str, VectorEntry] = {}  # entry_id -> VectorEntry, insertion ordered
        self._index = index if index is not None else LinearScanIndex()
        self._dirty = False
        self._last_synced_at: Optional[datetime] = None
        self._lock = threading.RLock()

    @property
    def dimension(self) -> Optional[int]:
        """Embedding length every entry must share, None while unconstrained."""
        with self._lock:
            return self._expected_dimension()

    def _expected_dimension(self, exclude: Optional[str] = None) -> Optional[int]:
        if self._configured_dimension is not None:
            return self._configured_dimension
        for entry_id, entry in self._entries.items():
            if entry_id != exclude:
                return len(entry.embedding)
        return None

    def _check_embedding(self, embedding: Sequence[float], exclude: Optional[str] = None) -> None:
        expected = self._expected_dimension(exclude)
        if expected is not None:
            check_dimension(expected, embedding)

    def add(self, entry: VectorEntryInput) -> VectorEntry:
        """Add a new entry with a generated id and created_at == updated_at == now."""
        with self._lock:
            self._check_embedding(entry.embedding)

            now = datetime.now()
            stored = VectorEntry(
                id=str(uuid.uuid4()),
                source_type=entry.source_type,
                content=entry.content,
                embedding=list(entry.embedding),
                metadata=deepcopy(entry.metadata),
                created_at=now,
                updated_at=now,
            )

            self._entries[stored.id] = stored
            self._index.add(stored.id, stored.embedding)
            self._dirty = True

        logger.log_vector_operation("add", stored.id, {"source_type": stored.source_type.value})
        return stored

    def search(self, query_embedding: Sequence[float], options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Rank entries by cosine similarity to the query.

        Entries are filtered by source type, then by tag intersection, then
        scored; scores below the threshold are dropped and the rest are
        returned best first, at most options.limit of them.
        """
        options = options or SearchOptions()

        with self._lock:
            if not self._entries:
                return []

            self._check_embedding(query_embedding)

            candidates = self._filter(self._entries.values(), options)
            ranked = self._index.rank(
                query_embedding,
                (entry.id for entry in candidates),
                options.threshold,
                options.limit,
            )
            results = [
                SearchResult(entry=self._entries[entry_id], score=score, distance=1 - score)
                for entry_id, score in ranked
            ]

        logger.log_vector_operation("search", details={
            "limit": options.limit,
            "threshold": options.threshold,
            "results": len(results),
        })
        return results

    @staticmethod
    def _filter(entries: Iterable[VectorEntry], options: SearchOptions) -> List[VectorEntry]:
        source_types = set(options.source_types)
        tags = set(options.tags)

        matched = []
        for entry in entries:
            if source_types and entry.source_type not in source_types:
                continue
            if tags and not (tags & entry.tags):
                continue
            matched.append(entry)
        return matched

    def get(self, entry_id: str) -> Optional[VectorEntry]:
        """Get an entry by id. The returned entry is shared; treat it as read-only."""
        with self._lock:
            return self._entries.get(entry_id)

    def delete(self, entry_id: str) -> bool:
        """Delete an entry. Deleting a missing id is a no-op returning False."""
        with self._lock:
            if entry_id not in self._entries:
                return False
            del self._entries[entry_id]
            self._index.remove(entry_id)
            self._dirty = True

        logger.log_vector_operation("delete", entry_id)
        return True

    def update(self, entry_id: str, updates: VectorEntryUpdate) -> Optional[VectorEntry]:
        """
        Update an existing entry.

        Metadata is merged key by key; other provided fields replace the stored
        ones. id and created_at are preserved, updated_at is refreshed.
        """
        with self._lock:
            existing = self._entries.get(entry_id)
            if existing is None:
                return None

            changes = {"updated_at": datetime.now()}
            if updates.source_type is not None:
                changes["source_type"] = updates.source_type
            if updates.content is not None:
                changes["content"] = updates.content
            if updates.embedding is not None:
                self._check_embedding(updates.embedding, exclude=entry_id)
                changes["embedding"] = list(updates.embedding)
            if updates.metadata is not None:
                changes["metadata"] = {**existing.metadata, **deepcopy(updates.metadata)}

            updated = replace(existing, **changes)
            self._entries[entry_id] = updated
            if "embedding" in changes:
                self._index.add(entry_id, updated.embedding)
            self._dirty = True

        logger.log_vector_operation("update", entry_id, {"fields": sorted(k for k in changes if k != "updated_at")})
        return updated

    def get_all(self) -> List[VectorEntry]:
        """Get all entries in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def get_stats(self) -> VectorStoreStats:
        """Entry counts per source type (every type present) and sync state."""
        with self._lock:
            entries_by_type = {source_type: 0 for source_type in SourceType}
            for entry in self._entries.values():
                entries_by_type[entry.source_type] += 1

            return VectorStoreStats(
                total_entries=len(self._entries),
                entries_by_type=entries_by_type,
                last_synced_at=self._last_synced_at,
                is_synced=not self._dirty,
            )

    def sync(self) -> None:
        """Mark the store as synced. Called after the external layer wrote the entries out."""
        with self._lock:
            self._last_synced_at = datetime.now()
            self._dirty = False

        logger.log_vector_operation("sync", details={"synced_at": self._last_synced_at.isoformat()})

    def clear(self) -> None:
        """Clear all entries from the store."""
        with self._lock:
            self._entries.clear()
            self._index.clear()
            self._dirty = True

        logger.log_vector_operation("clear")

    def load_entries(self, entries: Iterable[VectorEntry]) -> None:
        """
        Replace the collection with previously persisted entries.

        Used by the persistence layer at startup; leaves the store clean.
        Raises DimensionMismatchError if the entries disagree on length.
        """
        entries = list(entries)
        expected = self._configured_dimension
        if expected is None and entries:
            expected = len(entries[0].embedding)
        for entry in entries:
            check_dimension(expected, entry.embedding)

        with self._lock:
            self._entries.clear()
            self._index.clear()
            for entry in entries:
                self._entries[entry.id] = entry
                self._index.add(entry.id, entry.embedding)
            self._dirty = False

        logger.log_vector_operation("load", details={"count": len(entries)})

    def has_pending_changes(self) -> bool:
        """True if there are changes since the last sync."""
        with self._lock:
            return self._dirty

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
