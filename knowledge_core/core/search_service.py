"""
Text search over the vector store: embed the query, rank by cosine similarity.
"""

from typing import Any, Dict, List, Optional

from ..util.logging import logger
from ..vector.embeddings import EmbeddingGateway
from ..vector.index import IVectorStore
from ..vector.schemas import SearchOptions
from ..vector.types import SearchResult

PREVIEW_CHARS = 80


def semantic_search(query: str, store: IVectorStore, gateway: EmbeddingGateway,
                    options: Optional[SearchOptions] = None) -> List[SearchResult]:
    """
    Perform semantic search using vector similarity.

    Args:
        query: The search query string
        store: Vector store to search
        gateway: Embedding gateway used to embed the query
        options: Limit, threshold and filters, see SearchOptions

    Returns:
        Results sorted by descending score; empty for a blank query.

    Raises:
        EmbeddingProviderError: the query could not be embedded
        DimensionMismatchError: the query embedding does not match the store
    """
    if not query or not query.strip():
        return []

    query_embedding = gateway.generate_embedding(query)
    results = store.search(query_embedding, options)

    logger.log_operation("search.semantic", "success", {
        "query_chars": len(query),
        "results": len(results),
    })
    return results


def describe_result(result: SearchResult) -> Dict[str, Any]:
    """Flatten a result into a display-ready dict."""
    entry = result.entry
    preview = ' '.join(entry.content.split())
    if len(preview) > PREVIEW_CHARS:
        preview = preview[:PREVIEW_CHARS] + "..."

    return {
        "id": entry.id,
        "source_type": entry.source_type.value,
        "title": entry.metadata.get("title"),
        "chunk_index": entry.metadata.get("chunk_index"),
        "score": float(result.score),
        "preview": preview,
        "explanation": f"Matched via semantic vector similarity at {result.score:.2f}",
    }
