"""
Document ingestion: extraction, chunking and the upload pipeline.
"""

from .chunker import TextChunker, count_words
from .parsers import BaseDocumentParser, HtmlParser, MarkdownParser, ParserFactory
from .service import IngestionService
from .types import (
    ChunkConfig,
    DocumentChunk,
    DocumentMetadata,
    ParsedDocument,
    ParseResult,
    UploadProgress,
    UploadResult,
    UploadStage,
)

__all__ = [
    'TextChunker',
    'count_words',
    'BaseDocumentParser',
    'HtmlParser',
    'MarkdownParser',
    'ParserFactory',
    'IngestionService',
    'ChunkConfig',
    'DocumentChunk',
    'DocumentMetadata',
    'ParsedDocument',
    'ParseResult',
    'UploadProgress',
    'UploadResult',
    'UploadStage',
]
