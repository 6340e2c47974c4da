"""Custom exceptions for the docsift server."""


class DocsiftError(Exception):
    """Base exception for all docsift errors."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BrowserConnectionError(DocsiftError):
    """Raised when the rendering backend cannot be reached. Fatal to a crawl."""


class PageProcessingError(DocsiftError):
    """Raised when a single page fails to fetch, process, or store."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to process {url}: {reason}", details={"url": url})
        self.url = url


class EmbeddingError(DocsiftError):
    """Raised when an embeddings batch fails after all retries."""


class ValidationError(DocsiftError):
    """Raised when tool input validation fails."""


class SearchError(DocsiftError):
    """Raised when a search operation fails."""
