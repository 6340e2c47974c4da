"""Test harness for docsift.

Provides in-memory doubles for Redis, the document store, the embedding
service and the rendering backend, so crawls, searches and tools run
without external services.

Example usage:

    from tests.harness import MockRenderingBackend, article_html

    backend = MockRenderingBackend(
        pages={"https://docs.example.com/": article_html("Home", LOREM)},
    )
"""

from tests.harness.mocks import (
    LOREM,
    MockDocumentStore,
    MockEmbeddingService,
    MockPipeline,
    MockRedis,
    MockRenderingBackend,
    StoredPage,
    article_html,
    make_hit,
)

__all__ = [
    "LOREM",
    "MockDocumentStore",
    "MockEmbeddingService",
    "MockPipeline",
    "MockRedis",
    "MockRenderingBackend",
    "StoredPage",
    "article_html",
    "make_hit",
]
