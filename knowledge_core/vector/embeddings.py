"""
Embedding providers and the gateway that fronts them.

The gateway truncates input to the provider's token budget and turns
provider failures into EmbeddingProviderError. It never substitutes
zero vectors for a failed call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..core.errors import EmbeddingProviderError
from ..util.logging import logger

# Rough estimate used for truncation: 1 token ~ 4 characters
CHARS_PER_TOKEN = 4

# text-embedding-3-small output size
DEFAULT_DIMENSION = 1536


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for several texts, in input order."""
        return [self.embed_text(text) for text in texts]

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def is_available(self) -> bool:
        """Whether the provider can currently serve requests."""
        return True


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing and offline use.

    The text is hashed to a 32-bit seed, the seed drives a linear
    congruential generator that fills the vector, and the result is
    L2-normalised. Same text gives a bit-identical unit vector.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self.dimension = dimension

    @staticmethod
    def _seed(text: str) -> int:
        """31-multiplier rolling string hash wrapped to a signed 32-bit int."""
        value = 0
        for char in text:
            value = (value * 31 + ord(char)) & 0xFFFFFFFF
        if value >= 0x80000000:
            value -= 0x100000000
        return value

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic unit-length embedding vector."""
        seed = self._seed(text)
        values = np.empty(self.dimension, dtype=np.float64)
        for i in range(self.dimension):
            seed = (seed * 1103515245 + 12345) & 0x7FFFFFFF
            values[i] = seed / 0x7FFFFFFF * 2 - 1

        # A component is 0 only at seed == 0x7FFFFFFF / 2, which is not an integer
        return (values / np.linalg.norm(values)).tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Local sentence-transformers provider.

    Needs the optional ``sentence-transformers`` dependency; the model is
    loaded on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Encode a batch in one model call."""
        if not texts:
            return []
        embeddings = self.model.encode(texts, convert_to_tensor=False)
        return [row.tolist() for row in embeddings]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    def is_available(self) -> bool:
        try:
            self.model
        except Exception as e:
            logger.warning(f"Sentence-transformers model {self.model_name} unavailable: {e}")
            return False
        return True


@dataclass
class EmbeddingOptions:
    """Per-call embedding options."""

    max_tokens: int = 8191
    """Input budget; longer text is cut to max_tokens * 4 characters"""


def truncate_text(text: str, max_tokens: int) -> str:
    """Truncate text to fit within the approximate token limit."""
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


class EmbeddingGateway:
    """
    Thin seam between the core and an embedding provider.

    Normalises text length before delegating and validates what comes back.
    """

    def __init__(self, provider: IEmbeddingProvider, options: Optional[EmbeddingOptions] = None):
        self.provider = provider
        self.options = options or EmbeddingOptions()

    def generate_embedding(self, text: str, options: Optional[EmbeddingOptions] = None) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            EmbeddingProviderError: provider failed or returned an unusable vector
        """
        options = options or self.options
        truncated = truncate_text(text, options.max_tokens)

        try:
            vector = self.provider.embed_text(truncated)
        except EmbeddingProviderError:
            raise
        except Exception as e:
            logger.log_embedding_failure(str(e), {"chars": len(truncated)})
            raise EmbeddingProviderError(f"Failed to generate embedding: {e}") from e

        return self._validate(vector)

    def generate_batch_embeddings(self, texts: List[str], options: Optional[EmbeddingOptions] = None) -> List[List[float]]:
        """
        Generate embeddings for multiple texts.

        Output is in input order and has the same length as the input.
        """
        if not texts:
            return []

        options = options or self.options
        truncated = [truncate_text(text, options.max_tokens) for text in texts]

        try:
            vectors = self.provider.embed_texts(truncated)
        except EmbeddingProviderError:
            raise
        except Exception as e:
            logger.log_embedding_failure(str(e), {"batch_size": len(truncated)})
            raise EmbeddingProviderError(f"Failed to generate batch embeddings: {e}") from e

        if vectors is None or len(vectors) != len(texts):
            count = 0 if vectors is None else len(vectors)
            raise EmbeddingProviderError(
                f"Provider returned {count} embeddings for {len(texts)} texts"
            )

        return [self._validate(vector) for vector in vectors]

    def is_available(self) -> bool:
        """Check if the embedding provider is ready."""
        try:
            return bool(self.provider.is_available())
        except Exception as e:
            logger.warning(f"Embedding availability check failed: {e}")
            return False

    def get_dimension(self) -> int:
        return self.provider.get_dimension()

    @staticmethod
    def _validate(vector) -> List[float]:
        if vector is None or len(vector) == 0:
            raise EmbeddingProviderError("Provider returned an empty embedding")

        values = np.asarray(vector, dtype=np.float64).reshape(-1)
        if not np.all(np.isfinite(values)):
            raise EmbeddingProviderError("Provider returned a non-finite embedding")
        return values.tolist()
