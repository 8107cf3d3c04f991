"""
Structured operation logging for the store, ingestion pipeline and embedding gateway.

Every record reads "Operation: <name>, Status: <status>[, Details: {...}]" so the
log can be grepped by operation name. Details are scrubbed before formatting:
document text, queries and raw vectors never reach the handler.
"""

import logging
from typing import Any, Dict, List

# Keys whose values are never written to the log verbatim
SENSITIVE_FIELDS = ['content', 'embedding', 'text', 'query']

MAX_STRING_LENGTH = 100
MAX_LIST_ITEMS = 20

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class StructuredLogger:
    """Operation logger shared by the vector, ingestion and embedding layers."""

    def __init__(self, name: str = "knowledge_core", level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # One stream handler per named logger, even if constructed repeatedly
        if not self.logger.handlers:
            stream = logging.StreamHandler()
            stream.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(stream)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        self.logger.log(level, message)

    def log_vector_operation(self, operation: str, entry_id: str = None, details: Dict[str, Any] = None, status: str = "success"):
        """Store mutations are chatty, so they go out at DEBUG."""
        payload = {} if entry_id is None else {"entry_id": entry_id}
        payload.update(details or {})
        self.log_operation(f"vector.{operation}", status, payload, level=logging.DEBUG)

    def log_ingestion_event(self, file_name: str, stage: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log an ingestion pipeline stage for one file; failures are warnings."""
        payload = {"file_name": file_name, "stage": stage}
        payload.update(details or {})
        level = logging.WARNING if status == "failed" else logging.INFO
        self.log_operation(f"ingestion.{stage}", status, payload, level=level)

    def log_embedding_failure(self, reason: str, details: Dict[str, Any] = None):
        payload = {"reason": reason[:200]}
        payload.update(details or {})
        self.log_operation("embedding.generate", "failed", payload, level=logging.WARNING)

    def warning(self, message: str) -> None:
        self.logger.warning(message)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """
    Make a log-safe copy of payload.

    Values under sensitive keys become "[REDACTED]" (unless reveal_sensitive),
    strings are cut to MAX_STRING_LENGTH characters and sequences to
    MAX_LIST_ITEMS items plus a "... (N more)" marker. Nested dicts and
    sequences are handled recursively; anything else passes through.
    """
    hidden = SENSITIVE_FIELDS if sensitive_fields is None else sensitive_fields

    def scrub(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: "[REDACTED]" if key in hidden and not reveal_sensitive else scrub(item)
                for key, item in value.items()
            }
        if isinstance(value, str):
            if len(value) <= MAX_STRING_LENGTH:
                return value
            return value[:MAX_STRING_LENGTH] + "..."
        if isinstance(value, (list, tuple)):
            kept = [scrub(item) for item in value[:MAX_LIST_ITEMS]]
            if len(value) > MAX_LIST_ITEMS:
                kept.append(f"... ({len(value) - MAX_LIST_ITEMS} more)")
            return kept
        return value

    return scrub(payload)


logger = StructuredLogger()
