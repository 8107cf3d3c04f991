"""
Document extraction for Markdown, plain text and HTML.

Each parser turns raw content into plain text, a title, document metadata
and the ordered chunk sequence that feeds the vector store.
"""

import html
import re
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.errors import DocumentParseError, UnsupportedDocumentError
from ..util.logging import logger
from .chunker import TextChunker, count_words
from .types import ChunkConfig, DocumentMetadata, ParsedDocument, ParseResult

RawContent = Union[bytes, bytearray, str]

EXTENSION_TO_MIME: Dict[str, str] = {
    '.md': 'text/markdown',
    '.markdown': 'text/markdown',
    '.txt': 'text/plain',
    '.html': 'text/html',
    '.htm': 'text/html',
}

# Function words per language; the language with the most hits wins
LANGUAGE_KEYWORDS: Dict[str, frozenset] = {
    'en': frozenset({'the', 'and', 'is', 'to', 'of', 'a', 'in'}),
    'de': frozenset({'der', 'die', 'das', 'und', 'ist', 'zu', 'von'}),
    'fr': frozenset({'le', 'la', 'les', 'et', 'est', 'de', 'à'}),
    'es': frozenset({'el', 'la', 'los', 'y', 'es', 'de', 'en'}),
}
LANGUAGE_SAMPLE_CHARS = 1000

HEADING_TITLE = re.compile(r'^#{1,3}[ \t]+(.+)$', re.MULTILINE)
HEADING_BOUNDARY = re.compile(r'^#{1,3}[ \t]', re.MULTILINE)
MAX_TITLE_LINE = 100


def normalize_text(text: str) -> str:
    """Unify line endings, collapse 3+ newlines to a blank line, trim."""
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


class BaseDocumentParser(ABC):
    """Abstract base class for document parsers."""

    supported_types: List[str] = []
    default_mime_type: str = 'text/plain'

    def __init__(self, chunk_config: Optional[ChunkConfig] = None):
        self.chunker = TextChunker(chunk_config)

    @abstractmethod
    def supports(self, mime_type: str) -> bool:
        """Check if this parser handles the given MIME type."""
        pass

    @abstractmethod
    def parse(self, content: RawContent, file_name: str) -> ParsedDocument:
        """
        Parse raw document content.

        Raises:
            DocumentParseError: content cannot be decoded
        """
        pass

    def decode(self, content: RawContent, file_name: str) -> str:
        if isinstance(content, str):
            return content
        try:
            return bytes(content).decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise DocumentParseError(file_name, f"content is not valid UTF-8 text ({e.reason} at byte {e.start})") from e

    def extract_title(self, content: str, file_name: str) -> str:
        """First level 1-3 heading, else a short first line, else the file name without extension."""
        match = HEADING_TITLE.search(content)
        if match:
            return match.group(1).strip()

        first_line = content.split('\n', 1)[0].strip()
        if first_line and len(first_line) < MAX_TITLE_LINE:
            return first_line

        return Path(file_name).stem

    def detect_language(self, text: str) -> str:
        """Coarse keyword-frequency guess: en, de, fr, es or unknown."""
        words = Counter(re.findall(r'\w+', text[:LANGUAGE_SAMPLE_CHARS].lower()))

        best_language, best_hits = 'unknown', 0
        for language, keywords in LANGUAGE_KEYWORDS.items():
            hits = sum(words[word] for word in keywords)
            if hits > best_hits:
                best_language, best_hits = language, hits
        return best_language

    def build_document(self, text: str, title: str, file_name: str, raw: RawContent, chunks) -> ParsedDocument:
        return ParsedDocument(
            title=title,
            content=text,
            metadata=DocumentMetadata(
                file_name=file_name,
                mime_type=EXTENSION_TO_MIME.get(Path(file_name).suffix.lower(), self.default_mime_type),
                file_size=len(raw.encode('utf-8')) if isinstance(raw, str) else len(raw),
                word_count=count_words(text),
                char_count=len(text),
                language=self.detect_language(text),
            ),
            chunks=chunks,
        )


class MarkdownParser(BaseDocumentParser):
    """Parser for Markdown and plain text files."""

    supported_types = ['markdown', 'txt']
    default_mime_type = 'text/markdown'

    def supports(self, mime_type: str) -> bool:
        return mime_type in ('text/markdown', 'text/plain')

    def parse(self, content: RawContent, file_name: str) -> ParsedDocument:
        text = normalize_text(self.decode(content, file_name))
        title = self.extract_title(text, file_name)

        # Headings are preferred split points: each heading starts a new section
        section_starts = [match.start() for match in HEADING_BOUNDARY.finditer(text)]
        chunks = self.chunker.split_sections(text, section_starts)

        return self.build_document(text, title, file_name, content, chunks)


class HtmlParser(BaseDocumentParser):
    """Parser for HTML files."""

    supported_types = ['html']
    default_mime_type = 'text/html'

    BLOCK_TAGS = re.compile(r'</?(?:p|div|br|h[1-6]|li|tr)\b[^>]*>', re.IGNORECASE)
    DROPPED_ELEMENTS = [
        re.compile(rf'<{tag}\b[^>]*>.*?</{tag}\s*>', re.IGNORECASE | re.DOTALL)
        for tag in ('script', 'style', 'noscript')
    ]
    COMMENT = re.compile(r'<!--.*?-->', re.DOTALL)
    TAG = re.compile(r'<[^>]+>')
    TITLE = re.compile(r'<title[^>]*>(.*?)</title\s*>', re.IGNORECASE | re.DOTALL)

    def supports(self, mime_type: str) -> bool:
        return mime_type == 'text/html'

    def parse(self, content: RawContent, file_name: str) -> ParsedDocument:
        markup = self.decode(content, file_name)

        text = self.extract_text_content(markup)
        title = self.extract_html_title(markup) or self.extract_title(text, file_name)
        chunks = self.chunker.split(text)

        return self.build_document(text, title, file_name, content, chunks)

    def extract_html_title(self, markup: str) -> Optional[str]:
        """Text of the <title> element, None if absent or blank."""
        match = self.TITLE.search(markup)
        if not match:
            return None
        title = ' '.join(self.decode_entities(match.group(1)).split())
        return title or None

    def extract_text_content(self, markup: str) -> str:
        """Strip markup, keeping block boundaries as line breaks."""
        text = markup
        for pattern in self.DROPPED_ELEMENTS:
            text = pattern.sub('', text)
        text = self.COMMENT.sub('', text)

        text = self.BLOCK_TAGS.sub('\n', text)
        text = self.TAG.sub('', text)
        text = self.decode_entities(text)

        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n[ \t]+', '\n', text)
        text = re.sub(r'[ \t]+\n', '\n', text)
        return normalize_text(text)

    @staticmethod
    def decode_entities(text: str) -> str:
        """Decode named and numeric entities; non-breaking spaces become plain spaces."""
        return html.unescape(text).replace('\xa0', ' ')


class ParserFactory:
    """
    Picks a parser by MIME type or file extension.

    Custom parsers registered later take precedence over the built-in ones.
    """

    def __init__(self, chunk_config: Optional[ChunkConfig] = None, parsers: Optional[List[BaseDocumentParser]] = None):
        if parsers is None:
            parsers = [MarkdownParser(chunk_config), HtmlParser(chunk_config)]
        self.parsers: List[BaseDocumentParser] = list(parsers)

    def register_parser(self, parser: BaseDocumentParser) -> None:
        self.parsers.insert(0, parser)

    def get_parser(self, mime_type: str) -> Optional[BaseDocumentParser]:
        for parser in self.parsers:
            if parser.supports(mime_type):
                return parser
        return None

    @staticmethod
    def get_mime_type(file_name: str) -> Optional[str]:
        return EXTENSION_TO_MIME.get(Path(file_name).suffix.lower())

    def get_parser_for_file(self, file_name: str) -> Optional[BaseDocumentParser]:
        mime_type = self.get_mime_type(file_name)
        if mime_type is None:
            return None
        return self.get_parser(mime_type)

    def is_supported(self, file_name: str) -> bool:
        return self.get_parser_for_file(file_name) is not None

    @staticmethod
    def supported_extensions() -> List[str]:
        return list(EXTENSION_TO_MIME)

    def parse_document(self, content: RawContent, file_name: str, mime_type: Optional[str] = None) -> ParsedDocument:
        """
        Parse content with the parser matching mime_type (or the file extension).

        Raises:
            UnsupportedDocumentError: no parser handles the type
            DocumentParseError: content cannot be decoded
        """
        parser = self.get_parser(mime_type) if mime_type else self.get_parser_for_file(file_name)
        if parser is None:
            raise UnsupportedDocumentError(
                file_name,
                f"unsupported file type. Supported: {', '.join(self.supported_extensions())}",
            )
        return parser.parse(content, file_name)

    def parse(self, content: RawContent, file_name: str, mime_type: Optional[str] = None) -> ParseResult:
        """Parse content, reporting failure as a result instead of raising."""
        try:
            document = self.parse_document(content, file_name, mime_type)
        except DocumentParseError as e:
            logger.log_ingestion_event(file_name, "parsing", {"reason": e.reason}, status="failed")
            return ParseResult(success=False, file_name=file_name, error=str(e))

        return ParseResult(success=True, file_name=file_name, document=document)
