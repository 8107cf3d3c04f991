#!/usr/bin/env python3
"""
Document ingestion utility.

Ingests Markdown, text and HTML files into the vector store, saves a SQLite
snapshot and optionally runs a semantic search against the result.
"""

import argparse
import logging
import sys
from pathlib import Path

# Load KC_* settings from a .env file before the config module reads them
import dotenv
dotenv.load_dotenv()

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from knowledge_core.core.config import (
    create_vector_store,
    debug_enabled,
    get_chunk_config,
    get_db_path,
    get_embedding_gateway,
    get_max_file_size,
    validate_config,
)
from knowledge_core.core.errors import KnowledgeCoreError
from knowledge_core.core.persistence import restore_snapshot, save_snapshot
from knowledge_core.core.search_service import describe_result, semantic_search
from knowledge_core.ingestion.service import IngestionService
from knowledge_core.util.logging import logger
from knowledge_core.vector.schemas import SearchOptions
from knowledge_core.vector.types import SourceType


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ingest documents into the knowledge store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s notes.md guide.html               # Ingest two files
  %(prog)s docs/*.md --tag manual --restore  # Add to the existing snapshot
  %(prog)s notes.md --query "setup steps"    # Ingest, then search

Environment variables:
- KC_DB_PATH=./data/knowledge.db
- KC_EMBED_PROVIDER=hash|sentence-transformers
- KC_CHUNK_MAX_SIZE=1000, KC_CHUNK_OVERLAP=200
- KC_DEBUG=true (log store operations)
        """
    )

    parser.add_argument("paths", nargs="+", help="Files to ingest (.md, .markdown, .txt, .html, .htm)")
    parser.add_argument("--db", default=None, help="Snapshot database path (default: KC_DB_PATH)")
    parser.add_argument("--restore", action="store_true", help="Load the existing snapshot before ingesting")
    parser.add_argument("--no-save", action="store_true", help="Do not write a snapshot after ingesting")
    parser.add_argument(
        "--source-type",
        default=SourceType.DOCUMENT.value,
        choices=[source_type.value for source_type in SourceType],
        help="Source type recorded on every entry (default: document)",
    )
    parser.add_argument("--tag", action="append", default=[], help="Tag added to every entry (repeatable)")
    parser.add_argument("--query", "-q", help="Run a semantic search after ingesting")
    parser.add_argument("--limit", "-k", type=int, default=5, help="Maximum search results (default: 5)")
    parser.add_argument("--threshold", type=float, default=0.0, help="Minimum similarity score (default: 0.0)")
    return parser


def main(argv=None):
    """Ingest files, snapshot the store and optionally search it."""
    args = build_parser().parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    if debug_enabled():
        logger.logger.setLevel(logging.DEBUG)

    db_path = args.db or get_db_path()
    gateway = get_embedding_gateway()
    store = create_vector_store(dimension=gateway.get_dimension())

    if args.restore:
        try:
            restored = restore_snapshot(store, db_path)
        except KnowledgeCoreError as e:
            print(f"ERROR: Cannot restore {db_path}: {e}")
            sys.exit(1)
        print(f"✓ Restored {restored} entries from {db_path}")

    service = IngestionService(store, gateway, get_chunk_config(), max_file_size=get_max_file_size())
    extra_metadata = {"tags": sorted(set(args.tag))} if args.tag else None

    print(f"Ingesting {len(args.paths)} files...")
    results = service.ingest_files(args.paths, SourceType(args.source_type), extra_metadata)

    if not results:
        print(f"ERROR: {service.last_error}")
        sys.exit(1)

    for result in results:
        if result.success:
            line = f"✓ {result.file_name}: {len(result.entry_ids)} chunks stored"
            if result.failed_chunks:
                line += f" ({len(result.failed_chunks)} failed)"
            print(line)
        else:
            print(f"✗ {result.file_name}: {result.error}")

    if not args.no_save:
        saved = save_snapshot(store, db_path)
        print(f"✓ Saved {saved} entries to {db_path}")

    if args.query:
        options = SearchOptions(limit=args.limit, threshold=args.threshold)
        matches = semantic_search(args.query, store, gateway, options)
        print(f"Found {len(matches)} results for: {args.query}")
        for rank, match in enumerate(matches, 1):
            info = describe_result(match)
            print(f"  {rank}. [{info['score']:.3f}] {info['title']} #{info['chunk_index']}: {info['preview']}")

    if not all(result.success for result in results):
        sys.exit(1)


if __name__ == "__main__":
    main()
