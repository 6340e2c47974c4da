"""docsift database module - PostgreSQL + pgvector for documentation storage.

This module provides:
- SQLModel schemas for sources, pages, and chunks
- Async connection management with SQLAlchemy 2.0
- The document store used by the crawler and hybrid search

Usage:
    from docsift.db import Database, DocumentStore

    db = Database.from_settings(settings)
    store = DocumentStore(db)
    sources = await store.list_sources()
"""

from docsift.db.connection import Database
from docsift.db.models import Page, PageChunk, Source, SourceStatus
from docsift.db.store import ChunkHit, DocumentStore, PageFingerprint, PageView

__all__ = [
    # Connection
    "Database",
    # Store
    "DocumentStore",
    "ChunkHit",
    "PageFingerprint",
    "PageView",
    # Models
    "Source",
    "Page",
    "PageChunk",
    # Enums
    "SourceStatus",
]
