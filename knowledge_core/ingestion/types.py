"""
Document ingestion data model: chunking configuration, parsed documents, upload results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " "]


class ChunkConfig(BaseModel):
    """Chunking configuration. Separators are listed in order of preference."""

    model_config = ConfigDict(frozen=True)

    max_chunk_size: int = Field(default=1000, gt=0)
    overlap_size: int = Field(default=200, ge=0)
    separators: List[str] = Field(default_factory=lambda: list(DEFAULT_SEPARATORS))

    @field_validator('separators')
    @classmethod
    def separators_must_not_be_empty(cls, v):
        if any(not separator for separator in v):
            raise ValueError('separators cannot contain empty strings')
        return v

    @model_validator(mode='after')
    def overlap_must_be_smaller_than_chunk(self):
        if self.overlap_size >= self.max_chunk_size:
            raise ValueError(
                f'overlap_size ({self.overlap_size}) must be smaller than max_chunk_size ({self.max_chunk_size})'
            )
        return self


@dataclass(frozen=True)
class DocumentChunk:
    """A bounded fragment of a document's extracted text."""

    index: int
    """Dense 0-based position within the document"""

    content: str

    start_offset: int
    """Character offset of the first character in the extracted text"""

    end_offset: int
    """Character offset one past the last character"""

    word_count: int


@dataclass
class DocumentMetadata:
    file_name: str
    mime_type: str
    file_size: int
    word_count: int
    char_count: int
    language: str = "unknown"


@dataclass
class ParsedDocument:
    """Extraction output for one file. Consumed by ingestion, never persisted."""

    title: str
    content: str
    metadata: DocumentMetadata
    chunks: List[DocumentChunk] = field(default_factory=list)


@dataclass
class ParseResult:
    """Outcome of a parse attempt; failures carry a human-readable reason."""

    success: bool
    file_name: str
    document: Optional[ParsedDocument] = None
    error: Optional[str] = None


class UploadStage(str, Enum):
    READING = "reading"
    PARSING = "parsing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class UploadProgress:
    file_name: str
    stage: UploadStage
    progress: float
    """Percentage, 0-100"""
    message: str


@dataclass
class UploadResult:
    """Outcome of ingesting one file."""

    success: bool
    file_name: str
    chunk_count: int = 0
    entry_ids: List[str] = field(default_factory=list)
    failed_chunks: List[int] = field(default_factory=list)
    """Indices of chunks whose embedding failed and were skipped"""
    error: Optional[str] = None
