"""
Vector store and similarity index interfaces, plus the exhaustive linear-scan index.

The store owns entries and filtering; the index owns ranking. Swapping
LinearScanIndex for an approximate index does not change the store contract.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .schemas import SearchOptions, VectorEntryInput, VectorEntryUpdate
from .similarity import as_vector
from .types import SearchResult, VectorEntry, VectorStoreStats


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, entry: VectorEntryInput) -> VectorEntry:
        """Add a new entry and return it with generated id and timestamps."""
        pass

    @abstractmethod
    def search(self, query_embedding: Sequence[float], options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Search for similar entries and return ranked results."""
        pass

    @abstractmethod
    def get(self, entry_id: str) -> Optional[VectorEntry]:
        """Get an entry by id, None if missing."""
        pass

    @abstractmethod
    def delete(self, entry_id: str) -> bool:
        """Delete an entry by id. Returns whether anything was removed."""
        pass

    @abstractmethod
    def update(self, entry_id: str, updates: VectorEntryUpdate) -> Optional[VectorEntry]:
        """Update an entry, None if missing."""
        pass

    @abstractmethod
    def get_all(self) -> List[VectorEntry]:
        """Get all entries."""
        pass

    @abstractmethod
    def get_stats(self) -> VectorStoreStats:
        """Get store statistics."""
        pass

    @abstractmethod
    def sync(self) -> None:
        """Mark the store as synced with persistent storage."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all entries from the store."""
        pass


class IVectorIndex(ABC):
    """Ranks stored vectors against a query."""

    @abstractmethod
    def add(self, entry_id: str, embedding: Sequence[float]) -> None:
        pass

    @abstractmethod
    def remove(self, entry_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def rank(self, query: Sequence[float], candidate_ids: Iterable[str],
             threshold: float, limit: int) -> List[Tuple[str, float]]:
        """
        Score candidates against the query.

        Returns (entry_id, score) pairs with score >= threshold, sorted by
        descending score, at most `limit` long. Equal scores keep candidate order.
        """
        pass


class LinearScanIndex(IVectorIndex):
    """Exhaustive cosine scan, O(n*d) per query."""

    def __init__(self):
        self._vectors: Dict[str, np.ndarray] = {}  # entry_id -> vector
        self._norms: Dict[str, float] = {}         # entry_id -> L2 norm

    def add(self, entry_id: str, embedding: Sequence[float]) -> None:
        vector = as_vector(embedding)
        self._vectors[entry_id] = vector
        self._norms[entry_id] = float(np.linalg.norm(vector))

    def remove(self, entry_id: str) -> None:
        self._vectors.pop(entry_id, None)
        self._norms.pop(entry_id, None)

    def clear(self) -> None:
        self._vectors.clear()
        self._norms.clear()

    def __len__(self) -> int:
        return len(self._vectors)

    def rank(self, query: Sequence[float], candidate_ids: Iterable[str],
             threshold: float, limit: int) -> List[Tuple[str, float]]:
        ids = list(candidate_ids)
        if not ids or limit == 0:
            return []

        query_vector = as_vector(query)
        query_norm = float(np.linalg.norm(query_vector))

        matrix = np.vstack([self._vectors[entry_id] for entry_id in ids])
        denominators = np.array([self._norms[entry_id] for entry_id in ids]) * query_norm
        dots = matrix @ query_vector

        # Zero-magnitude on either side scores exactly 0
        scores = np.divide(dots, denominators, out=np.zeros_like(dots), where=denominators != 0)
        scores = np.clip(scores, -1.0, 1.0)

        scored = [(entry_id, float(score)) for entry_id, score in zip(ids, scores) if score >= threshold]
        # sorted() is stable, so ties keep insertion order
        scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
        return scored[:limit]
