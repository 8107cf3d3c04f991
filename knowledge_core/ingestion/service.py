"""
Ingestion pipeline: extract -> chunk -> embed -> store.

Files are processed one at a time and chunks one at a time, so a
cancellation request takes effect between any two embedding calls.
Entries already stored when cancellation lands are kept.
"""

import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..core.errors import EmbeddingProviderError, KnowledgeCoreError
from ..util.logging import logger
from ..vector.embeddings import EmbeddingGateway
from ..vector.index import IVectorStore
from ..vector.schemas import VectorEntryInput
from ..vector.types import SourceType, VectorEntry
from .chunker import count_words
from .parsers import ParserFactory, RawContent
from .types import ChunkConfig, DocumentChunk, ParsedDocument, UploadProgress, UploadResult, UploadStage

# 50 MiB
MAX_FILE_SIZE = 50 * 1024 * 1024

CANCELLED_MESSAGE = "Ingestion cancelled"


class _Cancelled(Exception):
    pass


class IngestionService:
    """Turns documents into stored, embedded chunks."""

    def __init__(
        self,
        store: IVectorStore,
        gateway: EmbeddingGateway,
        chunk_config: Optional[ChunkConfig] = None,
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
        max_file_size: int = MAX_FILE_SIZE,
        parser_factory: Optional[ParserFactory] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.parser_factory = parser_factory or ParserFactory(chunk_config)
        self.on_progress = on_progress
        self.max_file_size = max_file_size
        self.last_error: Optional[str] = None
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop after the current embedding call. Stored entries are not rolled back."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def validate_file(self, file_name: str, size: int) -> Optional[str]:
        """Return a reason the file cannot be ingested, or None."""
        if size > self.max_file_size:
            return f"File too large: {file_name} (max {self.max_file_size // (1024 * 1024)}MB)"

        if not self.parser_factory.is_supported(file_name):
            supported = ', '.join(self.parser_factory.supported_extensions())
            return f"Unsupported file type: {file_name}. Supported: {supported}"

        return None

    def ingest_files(self, paths: Iterable[Union[str, Path]], source_type: SourceType = SourceType.DOCUMENT,
                     extra_metadata: Optional[Dict[str, Any]] = None) -> List[UploadResult]:
        """
        Ingest several files sequentially.

        All files are validated first; if any is invalid nothing is ingested,
        an empty list is returned and last_error holds the reason. A file that
        fails later yields a failed result and the batch moves on.
        """
        self._cancel_event.clear()
        self.last_error = None
        paths = [Path(p) for p in paths]

        for path in paths:
            try:
                error = self.validate_file(path.name, path.stat().st_size)
            except OSError as e:
                error = f"Cannot read {path}: {e}"
            if error:
                self.last_error = error
                logger.log_ingestion_event(path.name, "validation", {"reason": error}, status="failed")
                return []

        results = []
        for path in paths:
            if self.cancelled:
                break
            results.append(self._ingest_file(path, source_type, extra_metadata))

        logger.log_operation("ingestion.batch", "complete", {
            "files": len(paths),
            "processed": len(results),
            "succeeded": sum(1 for r in results if r.success),
            "cancelled": self.cancelled,
        })
        return results

    def ingest_file(self, path: Union[str, Path], source_type: SourceType = SourceType.DOCUMENT,
                    extra_metadata: Optional[Dict[str, Any]] = None) -> UploadResult:
        """Read one file from disk and ingest it."""
        self._cancel_event.clear()
        return self._ingest_file(Path(path), source_type, extra_metadata)

    def ingest_content(self, content: RawContent, file_name: str, source_type: SourceType = SourceType.DOCUMENT,
                       extra_metadata: Optional[Dict[str, Any]] = None) -> UploadResult:
        """Ingest raw document content that is already in memory."""
        self._cancel_event.clear()
        return self._ingest_content(content, file_name, source_type, extra_metadata)

    def add_text(self, content: str, source_type: SourceType = SourceType.NOTE,
                 metadata: Optional[Dict[str, Any]] = None) -> VectorEntry:
        """
        Embed and store a single fragment without chunking (notes, transcripts).

        Raises:
            EmbeddingProviderError: the embedding could not be generated
        """
        embedding = self.gateway.generate_embedding(content)
        entry_metadata = {"word_count": count_words(content), "char_count": len(content)}
        entry_metadata.update(metadata or {})
        return self.store.add(VectorEntryInput(
            source_type=source_type,
            content=content,
            embedding=embedding,
            metadata=entry_metadata,
        ))

    def _ingest_file(self, path: Path, source_type: SourceType, extra_metadata: Optional[Dict[str, Any]]) -> UploadResult:
        file_name = path.name
        self._report(file_name, UploadStage.READING, 10, "Reading file...")

        try:
            error = self.validate_file(file_name, path.stat().st_size)
            content = None if error else path.read_bytes()
        except OSError as e:
            error = f"Cannot read {path}: {e}"

        if error:
            return self._failed(file_name, error)

        return self._ingest_content(content, file_name, source_type, extra_metadata)

    def _ingest_content(self, content: RawContent, file_name: str, source_type: SourceType,
                        extra_metadata: Optional[Dict[str, Any]]) -> UploadResult:
        entry_ids: List[str] = []
        failed_chunks: List[int] = []

        try:
            self._check_cancelled()
            self._report(file_name, UploadStage.PARSING, 30, "Parsing document...")
            parsed = self.parser_factory.parse_document(content, file_name)

            total = len(parsed.chunks)
            self._check_cancelled()
            self._report(file_name, UploadStage.CHUNKING, 50, f"Creating {total} chunks...")
            self._report(file_name, UploadStage.EMBEDDING, 60, "Generating embeddings...")

            for position, chunk in enumerate(parsed.chunks):
                self._check_cancelled()
                self._report(
                    file_name, UploadStage.EMBEDDING, 60 + position / total * 30,
                    f"Processing chunk {position + 1}/{total}...",
                )

                try:
                    embedding = self.gateway.generate_embedding(chunk.content)
                except EmbeddingProviderError as e:
                    failed_chunks.append(chunk.index)
                    logger.log_ingestion_event(file_name, "embedding",
                                               {"chunk_index": chunk.index, "reason": str(e)}, status="failed")
                    continue

                entry = self.store.add(VectorEntryInput(
                    source_type=source_type,
                    content=chunk.content,
                    embedding=embedding,
                    metadata=self._chunk_metadata(parsed, chunk, total, extra_metadata),
                ))
                entry_ids.append(entry.id)

            self._report(file_name, UploadStage.STORING, 90, f"Stored {len(entry_ids)}/{total} chunks")

        except _Cancelled:
            self._report(file_name, UploadStage.ERROR, 0, CANCELLED_MESSAGE)
            logger.log_ingestion_event(file_name, "cancelled", {"stored": len(entry_ids)}, status="cancelled")
            return UploadResult(success=False, file_name=file_name, chunk_count=len(entry_ids) + len(failed_chunks),
                                entry_ids=entry_ids, failed_chunks=failed_chunks, error=CANCELLED_MESSAGE)
        except KnowledgeCoreError as e:
            result = self._failed(file_name, str(e))
            result.entry_ids = entry_ids
            result.failed_chunks = failed_chunks
            return result

        if total and not entry_ids:
            return self._failed(file_name, f"All {total} chunk embeddings failed", failed_chunks=failed_chunks)

        self._report(file_name, UploadStage.COMPLETE, 100, "Upload complete")
        logger.log_ingestion_event(file_name, "complete", {
            "chunks": total,
            "stored": len(entry_ids),
            "failed_chunks": failed_chunks,
        })
        return UploadResult(success=True, file_name=file_name, chunk_count=total,
                            entry_ids=entry_ids, failed_chunks=failed_chunks)

    @staticmethod
    def _chunk_metadata(parsed: ParsedDocument, chunk: DocumentChunk, total: int,
                        extra_metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        metadata = dict(extra_metadata or {})
        metadata.update({
            "title": parsed.title,
            "source_path": parsed.metadata.file_name,
            "mime_type": parsed.metadata.mime_type,
            "language": parsed.metadata.language,
            "word_count": chunk.word_count,
            "char_count": len(chunk.content),
            "chunk_index": chunk.index,
            "total_chunks": total,
        })
        return metadata

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise _Cancelled()

    def _failed(self, file_name: str, error: str, failed_chunks: Optional[List[int]] = None) -> UploadResult:
        self._report(file_name, UploadStage.ERROR, 0, error)
        logger.log_ingestion_event(file_name, "error", {"reason": error}, status="failed")
        return UploadResult(success=False, file_name=file_name, failed_chunks=failed_chunks or [], error=error)

    def _report(self, file_name: str, stage: UploadStage, progress: float, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(UploadProgress(file_name=file_name, stage=stage, progress=progress, message=message))
