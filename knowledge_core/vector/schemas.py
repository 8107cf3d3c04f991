"""
Validated inputs for vector store operations.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .types import SourceType


def _coerce_array(v):
    # numpy arrays and tuples arrive from providers; store plain lists
    if hasattr(v, 'tolist'):
        return v.tolist()
    return v


def _normalize_tags(metadata):
    # "tags" is a list of strings; a bare string is a single tag
    if not metadata or metadata.get("tags") is None:
        return metadata
    tags = metadata["tags"]
    if isinstance(tags, str):
        return {**metadata, "tags": [tags]}
    if not isinstance(tags, (list, tuple, set, frozenset)) or not all(isinstance(t, str) for t in tags):
        raise ValueError("metadata tags must be a string or a list of strings")
    return metadata


class VectorEntryInput(BaseModel):
    """Fields supplied by the caller when adding an entry."""

    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('embedding', mode='before')
    @classmethod
    def embedding_as_list(cls, v):
        return _coerce_array(v)

    @field_validator('embedding')
    @classmethod
    def embedding_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('embedding cannot be empty')
        return v

    @field_validator('metadata')
    @classmethod
    def tags_as_list(cls, v):
        return _normalize_tags(v)


class VectorEntryUpdate(BaseModel):
    """Partial update. Unset fields keep their stored value; metadata is merged shallowly."""

    source_type: Optional[SourceType] = None
    content: Optional[str] = None
    embedding: Optional[List[float]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('embedding', mode='before')
    @classmethod
    def embedding_as_list(cls, v):
        return _coerce_array(v)

    @field_validator('embedding')
    @classmethod
    def embedding_must_not_be_empty(cls, v):
        if v is not None and not v:
            raise ValueError('embedding cannot be empty')
        return v

    @field_validator('metadata')
    @classmethod
    def tags_as_list(cls, v):
        return _normalize_tags(v)


class SearchOptions(BaseModel):
    """Options for similarity search."""

    limit: int = Field(default=10, ge=0)
    threshold: float = 0.0
    source_types: List[SourceType] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
