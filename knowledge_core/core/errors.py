"""
Error taxonomy for the retrieval core.
Not-found is never an error here: lookups return None/False instead.
"""


class KnowledgeCoreError(Exception):
    """Base class for all errors raised by knowledge_core."""


class DimensionMismatchError(KnowledgeCoreError, ValueError):
    """Two vectors that must share a length do not."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension {actual} does not match expected dimension {expected}")


class DocumentParseError(KnowledgeCoreError, ValueError):
    """Document content could not be read or extracted."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Failed to parse {file_name}: {reason}")


class UnsupportedDocumentError(DocumentParseError):
    """No parser is registered for the document type."""


class EmbeddingProviderError(KnowledgeCoreError, RuntimeError):
    """The embedding provider failed or returned malformed output."""
