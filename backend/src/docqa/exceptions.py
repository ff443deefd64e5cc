"""Exception hierarchy for docqa.

Every error carries a human-readable message plus a details dict so that
callers (the chat pipeline in particular) can turn it into a terminal
stream event without losing context.
"""

from typing import Any


class DocQAError(Exception):
    """Base exception for all docqa errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(DocQAError):
    """Raised when input has the wrong shape or size. Never retried."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class NotFoundError(DocQAError):
    """Raised when a document id is unknown to the vector store."""

    def __init__(self, doc_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["doc_id"] = doc_id
        self.doc_id = doc_id
        super().__init__(f"Document not found: {doc_id}", details)


class DimensionMismatch(DocQAError):
    """Raised when vector lengths (or chunk/vector counts) disagree."""

    def __init__(self, expected: int, actual: int, what: str = "vector dimension") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Mismatched {what}: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual},
        )


class ExtractionError(DocQAError):
    """Base exception for document text extraction errors."""


class ParseError(ExtractionError):
    """Raised when the uploaded document is corrupt or unreadable."""


class NoTextFound(ExtractionError):
    """Raised when extraction yields zero non-empty pages."""


class ProviderError(DocQAError):
    """Base exception for embedding / generation provider failures."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["status_code"] = status_code
        self.provider = provider
        self.status_code = status_code
        super().__init__(message, details)


class ProviderAuthError(ProviderError):
    """Credentials were rejected. Surfaced immediately, never retried."""


class ProviderTransientError(ProviderError):
    """Retryable provider fault (timeouts, rate limits, 5xx)."""


class EmbeddingError(DocQAError):
    """Raised when an embedding batch comes back incomplete."""


class GenerationError(DocQAError):
    """Raised when answer generation ends abnormally."""
