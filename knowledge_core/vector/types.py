"""
Vector store data model.
Entries are immutable once created; updates produce a replacement entry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict


class SourceType(str, Enum):
    """Where a stored fragment originated."""

    DOCUMENT = "document"
    WEB = "web"
    GITHUB_CODE = "github-code"
    GITHUB_ISSUE = "github-issue"
    GITHUB_PR = "github-pr"
    GITHUB_DIFF = "github-diff"
    NOTE = "note"
    VOICE = "voice"
    IMAGE = "image"


class VectorMetadata(TypedDict, total=False):
    """Known optional metadata fields. The stored bag may carry extra keys."""

    title: str
    source_path: str
    mime_type: str
    classification: List[str]
    tags: List[str]
    language: str
    # GitHub sources
    repo_url: str
    repository: str
    commit_hash: str
    file_path: str
    file_extension: str
    # Chunked content
    chunk_index: int
    total_chunks: int
    word_count: int
    char_count: int
    # Images
    width: int
    height: int
    has_description: bool
    has_ocr: bool
    # Voice
    duration: float
    format: str


@dataclass(frozen=True)
class VectorEntry:
    """A single fragment stored in the vector store."""

    id: str
    """Unique identifier generated at insertion"""

    source_type: SourceType
    """Origin of the content"""

    content: str
    """Plain text of the fragment"""

    embedding: List[float]
    """Fixed-length embedding vector"""

    metadata: Dict[str, Any]
    """Open metadata bag, see VectorMetadata for the known keys"""

    created_at: datetime
    updated_at: datetime

    @property
    def tags(self) -> frozenset:
        """Tag set of the entry; missing tags are an empty set and a bare string is one tag."""
        tags = self.metadata.get("tags") or ()
        if isinstance(tags, str):
            return frozenset([tags])
        return frozenset(tags)


@dataclass(frozen=True)
class SearchResult:
    """A ranked match produced by a single search call."""

    entry: VectorEntry

    score: float
    """Cosine similarity in [-1, 1], higher is more similar"""

    distance: float
    """1 - score"""


@dataclass
class VectorStoreStats:
    """Snapshot of store size and sync state."""

    total_entries: int
    entries_by_type: Dict[SourceType, int] = field(default_factory=dict)
    last_synced_at: Optional[datetime] = None
    is_synced: bool = True
