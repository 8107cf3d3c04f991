"""
Vector store: entries, cosine search, embedding gateway.
"""

from .index import IVectorStore, IVectorIndex, LinearScanIndex
from .memory_store import InMemoryVectorStore
from .schemas import SearchOptions, VectorEntryInput, VectorEntryUpdate
from .similarity import cosine_similarity
from .types import SearchResult, SourceType, VectorEntry, VectorMetadata, VectorStoreStats
from .embeddings import (
    DeterministicHashEmbedding,
    EmbeddingGateway,
    EmbeddingOptions,
    IEmbeddingProvider,
    SentenceTransformerEmbedding,
)

__all__ = [
    'IVectorStore',
    'IVectorIndex',
    'LinearScanIndex',
    'InMemoryVectorStore',
    'SearchOptions',
    'VectorEntryInput',
    'VectorEntryUpdate',
    'cosine_similarity',
    'SearchResult',
    'SourceType',
    'VectorEntry',
    'VectorMetadata',
    'VectorStoreStats',
    'DeterministicHashEmbedding',
    'EmbeddingGateway',
    'EmbeddingOptions',
    'IEmbeddingProvider',
    'SentenceTransformerEmbedding',
]
