"""
Environment configuration and factories for the knowledge core.

Module constants hold defaults only; every factory reads the environment at
call time, so a malformed value surfaces through validate_config() rather
than at import.
"""

import os
from pathlib import Path
from typing import List

# Database path for snapshots
DB_PATH = os.getenv("KC_DB_PATH", "./data/knowledge.db")

# Embedding defaults
DEFAULT_EMBED_PROVIDER = "hash"  # hash|sentence-transformers
DEFAULT_EMBED_DIM = 1536
DEFAULT_EMBED_MODEL_NAME = "all-mpnet-base-v2"
DEFAULT_EMBED_MAX_TOKENS = 8191

# Chunking and ingestion defaults
DEFAULT_CHUNK_MAX_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024

EMBED_PROVIDERS = ["hash", "sentence-transformers"]


def get_db_path() -> str:
    return os.getenv("KC_DB_PATH", DB_PATH)


def get_embed_provider_name() -> str:
    return os.getenv("KC_EMBED_PROVIDER", DEFAULT_EMBED_PROVIDER).lower()


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    provider = get_embed_provider_name()

    if provider == "sentence-transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(os.getenv("KC_EMBED_MODEL_NAME", DEFAULT_EMBED_MODEL_NAME))
    elif provider == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(_int_env("KC_EMBED_DIM", DEFAULT_EMBED_DIM))
    else:
        raise ValueError(f"Unknown KC_EMBED_PROVIDER: {provider} (expected one of {', '.join(EMBED_PROVIDERS)})")


def get_embedding_gateway():
    """Gateway around the configured provider with the configured token budget."""
    from ..vector.embeddings import EmbeddingGateway, EmbeddingOptions
    return EmbeddingGateway(
        get_embedding_provider(),
        EmbeddingOptions(max_tokens=_int_env("KC_EMBED_MAX_TOKENS", DEFAULT_EMBED_MAX_TOKENS)),
    )


def get_chunk_config():
    """Chunking configuration. Raises pydantic ValidationError for inconsistent sizes."""
    from ..ingestion.types import ChunkConfig
    return ChunkConfig(
        max_chunk_size=_int_env("KC_CHUNK_MAX_SIZE", DEFAULT_CHUNK_MAX_SIZE),
        overlap_size=_int_env("KC_CHUNK_OVERLAP", DEFAULT_CHUNK_OVERLAP),
    )


def get_max_file_size() -> int:
    return _int_env("KC_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE)


def create_vector_store(dimension=None):
    """New empty in-memory store, optionally pinned to an embedding dimension."""
    from ..vector.memory_store import InMemoryVectorStore
    return InMemoryVectorStore(dimension=dimension)


def debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("KC_DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None) -> None:
    """Ensure the database directory exists."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if get_embed_provider_name() not in EMBED_PROVIDERS:
        issues.append(f"Invalid KC_EMBED_PROVIDER: {get_embed_provider_name()}")

    numbers = {}
    for name, default in [
        ("KC_EMBED_DIM", DEFAULT_EMBED_DIM),
        ("KC_EMBED_MAX_TOKENS", DEFAULT_EMBED_MAX_TOKENS),
        ("KC_CHUNK_MAX_SIZE", DEFAULT_CHUNK_MAX_SIZE),
        ("KC_CHUNK_OVERLAP", DEFAULT_CHUNK_OVERLAP),
        ("KC_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
    ]:
        try:
            numbers[name] = _int_env(name, default)
        except ValueError:
            issues.append(f"{name} must be an integer")

    for name in ["KC_EMBED_DIM", "KC_EMBED_MAX_TOKENS", "KC_CHUNK_MAX_SIZE", "KC_MAX_FILE_SIZE"]:
        if name in numbers and numbers[name] < 1:
            issues.append(f"{name} must be >= 1")

    if "KC_CHUNK_OVERLAP" in numbers and numbers["KC_CHUNK_OVERLAP"] < 0:
        issues.append("KC_CHUNK_OVERLAP must be >= 0")

    if "KC_CHUNK_OVERLAP" in numbers and "KC_CHUNK_MAX_SIZE" in numbers:
        if numbers["KC_CHUNK_OVERLAP"] >= numbers["KC_CHUNK_MAX_SIZE"]:
            issues.append("KC_CHUNK_OVERLAP must be smaller than KC_CHUNK_MAX_SIZE")

    return issues
